"""
zipunlock CLI - Inspect Command
Usage: python -m zipunlock.cli.commands.inspect protected.zip
"""
import argparse
import sys

from ...tools.inspector import Inspector
from ...utils.logger import logger, set_verbose
from ..password import resolve_password


def main(argv=None):
    parser = argparse.ArgumentParser(description="List the entries of a password-protected zip")
    parser.add_argument("input", help="Path to the encrypted .zip file")
    parser.add_argument("-p", "--password", help="Archive password (default: env var or prompt)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show per-entry details")
    parser.add_argument("--filter", default=None, help="Mark entries whose names match this expression")
    args = parser.parse_args(argv)
    if args.verbose:
        set_verbose()

    try:
        Inspector().inspect(args.input, resolve_password(args.password), file_filter=args.filter)
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        logger.error(f"Inspection failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
