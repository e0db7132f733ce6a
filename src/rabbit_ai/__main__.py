"""Main entry point for the Rabbit AI CLI.

Usage:
    python -m rabbit_ai --help
"""

from rabbit_ai.cli import main

if __name__ == "__main__":
    main()
