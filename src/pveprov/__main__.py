"""Entry point for ``python -m pveprov``."""

from .cli.main import app

if __name__ == "__main__":
    app()
