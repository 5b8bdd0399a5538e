"""BlueprintFlow command line interface."""

from blueprintflow.cli.cli import app

__all__ = ["app"]
