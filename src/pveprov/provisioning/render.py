"""Template rendering for generated guest files."""

import shlex
from functools import lru_cache
from typing import Any

from jinja2 import Environment, PackageLoader, StrictUndefined


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    """Shared Jinja environment over the packaged templates."""
    env = Environment(
        loader=PackageLoader("pveprov", "templates"),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["shquote"] = shlex.quote
    return env


def render(template_name: str, **context: Any) -> str:
    """Render one template; missing variables raise instead of rendering empty."""
    return get_environment().get_template(template_name).render(**context)
