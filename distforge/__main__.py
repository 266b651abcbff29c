"""
distforge CLI entry point.

Usage:
    python -m distforge build [SRC] [OPTIONS]
"""

from .cli import main

if __name__ == "__main__":
    main()
