"""Allow ``python -m udprelay``."""

from udprelay.cli import run

if __name__ == "__main__":
    run()
