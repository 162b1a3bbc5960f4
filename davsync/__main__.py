"""
Entry point for running davsync as a module.

Usage:
    python -m davsync --help
    python -m davsync backup --output work.json
    python -m davsync restore work.json --overwrite
"""

from davsync.cli import cli

if __name__ == "__main__":
    cli()
