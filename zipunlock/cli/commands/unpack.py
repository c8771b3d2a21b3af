"""
zipunlock CLI - Unpack Command
Usage: python -m zipunlock.cli.commands.unpack protected.zip -o output_folder
"""
import argparse
import shutil
import sys
from pathlib import Path

from ...batch_processor import export_result
from ...config import DECRYPT_UNPACK_MODE, config
from ...flowunit import FlowUnit
from ...processor import DecryptArchive
from ...unpacker.grouper import FRAGMENT_COUNT, FRAGMENT_ID
from ...utils.logger import logger, set_verbose
from ..password import resolve_password


def main(argv=None):
    parser = argparse.ArgumentParser(description="Decrypt a password-protected zip and unpack its entries")
    parser.add_argument("input", help="Path to the encrypted .zip file")
    parser.add_argument("-o", "--output", help="Directory to unpack into")
    parser.add_argument("-p", "--password", help="Archive password (default: env var or prompt)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show per-entry details")
    parser.add_argument("--filter", default=None,
                        help=f"Regular expression entry names must contain (default: {config.file_filter})")
    parser.add_argument("-f", "--force", action="store_true", help="Overwrite existing files")

    args = parser.parse_args(argv)
    if args.verbose:
        set_verbose()

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Archive not found: {input_path}")
        sys.exit(1)

    out_dir = Path(args.output) if args.output else Path.cwd() / config.output_dir
    target = out_dir / input_path.stem
    if target.exists() and any(target.iterdir()) and not args.force:
        logger.error(f"Output directory is not empty: {target}")
        print("Use -f or --force to overwrite.")
        sys.exit(1)

    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        password = resolve_password(args.password)
        with DecryptArchive(password, mode=DECRYPT_UNPACK_MODE, file_filter=args.filter) as processor:
            result = processor.process(FlowUnit.from_path(input_path))

        if not result.ok:
            logger.error(f"Unpack failed: {result.error}")
            sys.exit(1)

        try:
            written = export_result(result, out_dir, DECRYPT_UNPACK_MODE)
        finally:
            for unit in result.success:
                unit.discard()

        original = result.original[0]
        print(f"\n✅ Success! Unpacked {len(written)} file(s) to: {target}")
        print(f"   Fragment:  {original.get(FRAGMENT_ID)} ({original.get(FRAGMENT_COUNT)} parts)")
        print(f"   Time:      {result.elapsed:.2f}s")

    except KeyboardInterrupt:
        print("\n❌ Operation cancelled by user.")
        shutil.rmtree(target, ignore_errors=True)
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
