"""Entry point for running the package as a module."""

from ytsync.cli import app

if __name__ == "__main__":
    app()
