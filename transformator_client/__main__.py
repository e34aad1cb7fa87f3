"""Entry point for ``python -m transformator_client``."""

from transformator_client.cli.commands import app

if __name__ == "__main__":
    app()
