"""Entry point for ``python -m volindex``."""

from volindex.cli import app

if __name__ == "__main__":
    app()
