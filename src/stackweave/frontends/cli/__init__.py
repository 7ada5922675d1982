"""Command-line interface for stackweave."""

from stackweave.frontends.cli.main import cli, main

__all__ = ["cli", "main"]
