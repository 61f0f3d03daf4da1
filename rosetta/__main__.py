"""
Entry point for running Rosetta as a module.

Usage:
    python -m rosetta --help
    python -m rosetta translate book.md --backend dummy
    python -m rosetta info
"""
from .cli import app


if __name__ == "__main__":
    app()
