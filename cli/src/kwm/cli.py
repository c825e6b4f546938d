"""Main CLI entry point for the channel keyword monitor."""

import click
from .commands import analyze


@click.group()
@click.version_option(version="0.1.0")
def main():
    """kwm - find recent YouTube uploads that mention a keyword."""
    pass


main.add_command(analyze.analyze)
main.add_command(analyze.channels)


if __name__ == "__main__":
    main()
