"""Entry point for running chimpflow as a module: python -m chimpflow."""

from chimpflow.cli.main import app

if __name__ == "__main__":
    app()
