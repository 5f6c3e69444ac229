"""reqvars command line interface."""

from reqvars.cli.commands import cli


def main() -> None:
    """Main entry point for the reqvars CLI."""
    cli()


__all__ = ["cli", "main"]
