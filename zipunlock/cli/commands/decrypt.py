"""
zipunlock CLI - Decrypt Command
Usage: python -m zipunlock.cli.commands.decrypt protected.zip -o plain.zip
"""
import argparse
import sys
from pathlib import Path

from ...config import DECRYPT_ONLY_MODE
from ...flowunit import FlowUnit
from ...processor import DecryptArchive
from ...utils.logger import logger, set_verbose
from ..password import resolve_password


def main(argv=None):
    parser = argparse.ArgumentParser(description="Decrypt a password-protected zip into a plain zip")
    parser.add_argument("input", help="Path to the encrypted .zip file")
    parser.add_argument("-o", "--output", help="Path to the decrypted .zip file")
    parser.add_argument("-p", "--password", help="Archive password (default: env var or prompt)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show per-entry details")
    parser.add_argument("-f", "--force", action="store_true", help="Overwrite existing files")

    args = parser.parse_args(argv)
    if args.verbose:
        set_verbose()

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Archive not found: {input_path}")
        sys.exit(1)

    if args.output:
        output_path = Path(args.output)
    else:
        # e.g., docs/file.zip -> ./file_decrypted.zip
        output_path = Path.cwd() / f"{input_path.stem}_decrypted.zip"

    if output_path.resolve() == input_path.resolve():
        logger.error("Output would overwrite the input archive")
        sys.exit(1)

    if output_path.exists() and not args.force:
        logger.error(f"Output file exists: {output_path}")
        print("Use -f or --force to overwrite.")
        sys.exit(1)

    try:
        password = resolve_password(args.password)
        with DecryptArchive(password, mode=DECRYPT_ONLY_MODE) as processor:
            result = processor.process(FlowUnit.from_path(input_path))

        if not result.ok:
            logger.error(f"Decryption failed: {result.error}")
            sys.exit(1)

        decrypted = result.success[0]
        try:
            decrypted.export(output_path)
        finally:
            decrypted.discard()

        print(f"\n✅ Success! Decrypted archive saved to: {output_path}")
        print(f"   Time:      {result.elapsed:.2f}s")

    except KeyboardInterrupt:
        print("\n❌ Operation cancelled by user.")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
