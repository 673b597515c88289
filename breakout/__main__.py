"""Entry point for ``python -m breakout``."""

from breakout.cli.main import app

if __name__ == "__main__":
    app()
