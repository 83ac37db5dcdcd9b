"""Allow ``python -m statuswrap``."""

from statuswrap.cli.main import cli

if __name__ == "__main__":
    cli()
