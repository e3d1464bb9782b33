"""Entry point for running letter_engine as a module.

Usage:
    python -m letter_engine <command> [options]
"""
from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
