"""Entry point for `python -m musicdedupe`."""

import sys


def main():
    from musicdedupe.app import run_app
    sys.exit(run_app())


if __name__ == "__main__":
    main()
