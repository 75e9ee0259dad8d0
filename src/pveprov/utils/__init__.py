"""Utility functions and helpers."""

from .helpers import (
    async_to_sync,
    mask_secret,
    ordered_group,
)
from .output import (
    confirm,
    console,
    create_table,
    download_progress,
    key_value_panel,
    print_cancelled,
    print_error,
    print_info,
    print_success,
    print_warning,
    prompt,
    spinner,
)

__all__ = [
    "async_to_sync",
    "confirm",
    "console",
    "create_table",
    "download_progress",
    "key_value_panel",
    "mask_secret",
    "ordered_group",
    "print_cancelled",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "prompt",
    "spinner",
]
