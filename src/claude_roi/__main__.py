"""Entry point for `python -m claude_roi`."""

import sys


def main():
    from claude_roi.cli import run
    sys.exit(run())


if __name__ == "__main__":
    main()
