import sys

from blamels.cli import app

if __name__ == "__main__":  # pragma: no cover
    app(sys.argv[1:] or ["serve"])  # pragma: no cover
