"""
zipunlock Batch Processor
Decrypts (and optionally unpacks) many archives concurrently with progress
tracking. Every job gets its own DecryptArchive; only settings are shared.
"""
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional

from .config import DECRYPT_UNPACK_MODE, config
from .errors import MalformedArchive
from .flowunit import PATH, FlowUnit
from .processor import DecryptArchive, ProcessResult
from .unpacker.grouper import FRAGMENT_ID
from .utils.logger import logger


def member_target(root: Path, unit: FlowUnit) -> Path:
    """Where an unpacked unit lands under root; refuses paths that escape it"""
    parent = unit.get(PATH) or '/'
    if parent.startswith('/') and parent != '/':
        raise MalformedArchive(f"Absolute entry path refused: {parent}/{unit.filename}")

    relative = PurePosixPath(parent.lstrip('/')) / (unit.filename or '')
    if '..' in relative.parts or not unit.filename:
        raise MalformedArchive(f"Entry path escapes the output directory: {relative}")
    return Path(root).joinpath(*relative.parts)


def export_result(result: ProcessResult, output_dir, mode: str) -> List[str]:
    """Write the success units of a result to disk, returns the paths written"""
    out_dir = Path(output_dir)
    written = []

    if mode == DECRYPT_UNPACK_MODE:
        stem = result.source.filename or 'archive'
        if stem.endswith('.zip'):
            stem = stem[:-4]
        root = out_dir / stem
        for unit in result.success:
            written.append(str(unit.export(member_target(root, unit))))
    else:
        for unit in result.success:
            written.append(str(unit.export(out_dir / unit.filename)))
    return written


class BatchProcessor:
    def __init__(
        self,
        password,
        mode: str = None,
        file_filter: str = None,
        max_workers: int = None
    ):
        self.password = password
        self.mode = mode or config.mode
        self.file_filter = file_filter
        # I/O bound so more than CPU count is fine
        self.max_workers = max_workers or config.max_workers or min(32, (os.cpu_count() or 4) * 2)

    def process_directory(
        self,
        input_dir: str,
        output_dir: str,
        recursive: bool = False,
        on_progress: Optional[Callable] = None
    ) -> Dict:
        """
        Process every archive in a directory.

        Args:
            input_dir: directory containing encrypted archives
            output_dir: directory to write decrypted archives or unpacked members
            recursive: if True, walks subdirectories
            on_progress: optional callback(completed, total, result)

        Returns:
            summary dict with results, stats, and failures
        """
        input_path = Path(input_dir)
        if not input_path.exists():
            raise ValueError(f"Input directory not found: {input_dir}")

        pattern = config.batch_pattern
        if recursive:
            files = sorted(f for f in input_path.rglob(pattern) if f.is_file())
        else:
            files = sorted(f for f in input_path.glob(pattern) if f.is_file())

        if not files:
            logger.warning(f"No archives matching {pattern} found in {input_dir}")
            return self._empty_summary()

        # Mirror input structure
        jobs = []
        for f in files:
            if recursive:
                out_dir = Path(output_dir) / f.relative_to(input_path).parent
            else:
                out_dir = Path(output_dir)
            jobs.append((f, out_dir))

        logger.info(f"🔓 Batch processing {len(jobs)} archives with {self.max_workers} workers...")
        return self._run(jobs, on_progress)

    def process_files(
        self,
        file_paths: List[str],
        output_dir: str,
        on_progress: Optional[Callable] = None
    ) -> Dict:
        """
        Process a specific list of archives.

        Args:
            file_paths: list of archive paths
            output_dir: directory to write results into
            on_progress: optional callback(completed, total, result)
        """
        jobs = [(Path(f), Path(output_dir)) for f in file_paths]
        logger.info(f"🔓 Batch processing {len(jobs)} archives with {self.max_workers} workers...")
        return self._run(jobs, on_progress)

    def _run(self, jobs: List[tuple], on_progress: Optional[Callable]) -> Dict:
        start_time = time.time()
        results = []
        failures = []
        total = len(jobs)
        completed = 0

        for _, out_dir in jobs:
            out_dir.mkdir(parents=True, exist_ok=True)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_job = {
                executor.submit(self._process_one, inp, out_dir): (inp, out_dir)
                for inp, out_dir in jobs
            }

            for future in as_completed(future_to_job):
                inp, out_dir = future_to_job[future]
                completed += 1

                try:
                    result = future.result()
                    results.append(result)

                    if on_progress:
                        on_progress(completed, total, result)

                    logger.info(
                        f"   [{completed}/{total}] {inp.name} "
                        f"→ {len(result['outputs'])} file(s)"
                    )

                except Exception as e:
                    failure = {
                        'file': str(inp),
                        'error': str(e)
                    }
                    failures.append(failure)

                    if on_progress:
                        on_progress(completed, total, failure)

                    logger.error(f"   [{completed}/{total}] {inp.name}: {e}")

        elapsed = time.time() - start_time
        return self._build_summary(results, failures, elapsed)

    def _process_one(self, input_path: Path, output_dir: Path) -> Dict:
        """Process a single archive, called from the thread pool"""
        if self.mode != DECRYPT_UNPACK_MODE and (output_dir / input_path.name).resolve() == input_path.resolve():
            raise ValueError(f"Refusing to overwrite the input archive {input_path}")

        with DecryptArchive(self.password, mode=self.mode, file_filter=self.file_filter) as processor:
            unit = FlowUnit.from_path(input_path)
            result = processor.process(unit)

        if not result.ok:
            raise result.error or RuntimeError(f"{input_path.name} was routed to {result.state}")

        try:
            outputs = export_result(result, output_dir, self.mode)
        finally:
            for produced in result.success:
                produced.discard()

        return {
            'input_file': str(input_path),
            'outputs': outputs,
            'fragment_id': unit.get(FRAGMENT_ID),
            'time': result.elapsed
        }

    def _build_summary(self, results: List[Dict], failures: List[Dict], elapsed: float) -> Dict:
        total = len(results) + len(failures)
        total_outputs = sum(len(r.get('outputs', [])) for r in results)

        logger.info(f"\n{'='*50}")
        logger.info(f"✨ Batch Complete!")
        logger.info(f"   Archives:  {len(results)} succeeded, {len(failures)} failed")
        logger.info(f"   Outputs:   {total_outputs} file(s)")
        logger.info(f"   Time:      {elapsed:.2f}s")
        logger.info(f"{'='*50}")

        return {
            'success': len(failures) == 0,
            'total': total,
            'succeeded': len(results),
            'failed': len(failures),
            'failures': failures,
            'results': results,
            'total_outputs': total_outputs,
            'processing_time': elapsed
        }

    def _empty_summary(self) -> Dict:
        return {
            'success': True,
            'total': 0,
            'succeeded': 0,
            'failed': 0,
            'failures': [],
            'results': [],
            'total_outputs': 0,
            'processing_time': 0
        }


__all__ = ["BatchProcessor", "export_result", "member_target"]
