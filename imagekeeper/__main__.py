"""
Executable module for imagekeeper.

Running:
    python -m imagekeeper

is equivalent to:
    imagekeeper
"""

from __future__ import annotations

import sys


def _print_startup_error(exc: ImportError) -> None:
    """Explain on stderr why the CLI could not be loaded."""
    try:
        from imagekeeper.__version__ import __version__
    except ImportError:
        __version__ = "<unknown>"

    sys.stderr.write("imagekeeper failed to start.\n")
    sys.stderr.write(f"Python version : {sys.version}\n")
    sys.stderr.write(f"imagekeeper version: {__version__}\n")
    sys.stderr.write("\n")
    sys.stderr.write(f"ImportError: {exc}\n")


def main() -> int:
    """
    Main entrypoint when executing `python -m imagekeeper`.

    Returns:
        Exit code returned by the CLI.
    """
    try:
        # Import lazily so dependencies are only loaded during CLI use
        from imagekeeper.cli import main as cli_main
    except ImportError as exc:
        _print_startup_error(exc)
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
