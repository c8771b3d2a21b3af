"""
zipunlock CLI - Batch Command
Usage: python -m zipunlock.cli.commands.batch input_dir/ -o output_dir/ [options]
"""
import argparse
import sys
from pathlib import Path

from ...batch_processor import BatchProcessor
from ...config import MODES, config
from ...utils.logger import logger, set_verbose
from ..password import resolve_password


def main(argv=None):
    parser = argparse.ArgumentParser(description="Batch decrypt or unpack password-protected zips")
    parser.add_argument("input", help="Input directory containing .zip files")
    parser.add_argument("-o", "--output", help="Output directory")
    parser.add_argument("-m", "--mode", choices=MODES, default=config.mode,
                        help=f"Processing mode (default: {config.mode})")
    parser.add_argument("-p", "--password", help="Archive password (default: env var or prompt)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show per-entry details")
    parser.add_argument("--filter", default=None,
                        help="Regular expression entry names must contain")
    parser.add_argument("-r", "--recursive", action="store_true",
                        help="Recursively process subdirectories")
    parser.add_argument("-w", "--workers", type=int, default=None,
                        help="Number of parallel workers (default: auto)")
    parser.add_argument("-f", "--force", action="store_true",
                        help="Overwrite existing files in output directory")

    args = parser.parse_args(argv)
    if args.verbose:
        set_verbose()

    input_dir = Path(args.input)
    if not input_dir.exists():
        logger.error(f"Input directory not found: {input_dir}")
        sys.exit(1)

    output_dir = (
        Path(args.output) if args.output
        else input_dir.parent / (input_dir.name + '_decrypted')
    )

    if output_dir.exists() and any(output_dir.iterdir()) and not args.force:
        logger.error(f"Output directory is not empty: {output_dir}")
        print("Use -f or --force to overwrite existing files.")
        sys.exit(1)

    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        batch = BatchProcessor(
            resolve_password(args.password),
            mode=args.mode,
            file_filter=args.filter,
            max_workers=args.workers
        )

        summary = batch.process_directory(
            input_dir=str(input_dir),
            output_dir=str(output_dir),
            recursive=args.recursive
        )

        if summary['failed'] > 0:
            print(f"\n{summary['failed']} archive(s) failed:")
            for f in summary['failures']:
                print(f"   {f['file']}: {f['error']}")
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nBatch operation cancelled.")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
