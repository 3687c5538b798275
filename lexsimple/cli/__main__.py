"""CLI entry point.

Allows running the CLI as a module: python -m lexsimple.cli
"""

from lexsimple.cli import app

if __name__ == "__main__":
    app()
