"""Allow ``python -m mutex_run``."""

from .cli import app

app(prog_name="mutex-run")
