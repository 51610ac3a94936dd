"""Entry point for python -m taikun_reconciler."""

from taikun_reconciler.cli import app

if __name__ == "__main__":
    app()
