"""bundlefree - serve client side ES module apps with npm dependencies, no build step.

    Returns:
        int: Exit code
"""
import sys

from constants import ExitCodes
from args import parse_args
from cli_serve import run_dev_server


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    run_dev_server(args)
    return ExitCodes.SUCCESS.value


if __name__ == "__main__":
    sys.exit(main())
