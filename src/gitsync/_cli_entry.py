"""Console-script entry point.

The CLI lives behind the ``cli`` extra; without click installed the
script exits with an install hint instead of a traceback.
"""

import importlib.util
import sys

_MISSING_CLICK = (
    "gitsync: the command-line interface needs click.\n"
    "Install the extra with:  pip install 'gitsync[cli]'"
)


def main():
    if importlib.util.find_spec("click") is None:
        sys.exit(_MISSING_CLICK)
    from .cli import main as cli_main
    cli_main(prog_name="gitsync")
