"""
zipunlock Processor
Decrypts, and optionally unpacks, one archive unit at a time and decides
where every resulting unit goes. Nothing raised while handling an archive
leaves process(): failures become routing decisions.
"""
import time
from typing import List, Optional

from .config import DECRYPT_ONLY_MODE, DECRYPT_UNPACK_MODE, MODES, config
from .errors import ArchiveError, EmptyArchive, InitializationFailure
from .flowunit import UUID, FlowUnit
from .reader.ciphers import SecretPassword
from .schemes import ArchiveScheme, create_scheme
from .unpacker.entry_filter import EntryFilter
from .unpacker.grouper import FragmentGrouper
from .utils.logger import logger

REL_SUCCESS = 'success'
REL_ORIGINAL = 'original'
REL_FAILURE = 'failure'
REL_ROLLBACK = 'rollback'


class State:
    START = 'START'
    READING = 'READING'
    FINALIZING = 'FINALIZING'
    SUCCESS = 'SUCCESS'
    FAILURE = 'FAILURE'
    ROLLBACK = 'ROLLBACK'


class ProcessResult:
    """Where the units of one invocation were routed."""

    def __init__(self, source: FlowUnit):
        self.source = source
        self.success: List[FlowUnit] = []
        self.original: List[FlowUnit] = []
        self.failure: List[FlowUnit] = []
        self.rollback: List[FlowUnit] = []
        self.error: Optional[BaseException] = None
        self.state = State.START
        self.elapsed = 0.0

    @property
    def ok(self) -> bool:
        return self.state == State.SUCCESS

    def routes(self) -> dict:
        return {
            REL_SUCCESS: self.success,
            REL_ORIGINAL: self.original,
            REL_FAILURE: self.failure,
            REL_ROLLBACK: self.rollback,
        }

    def succeed(self, units: List[FlowUnit]) -> "ProcessResult":
        self.success = list(units)
        self.original = [self.source]
        self.state = State.SUCCESS
        return self

    def fail(self, error: BaseException) -> "ProcessResult":
        self.failure = [self.source]
        self.error = error
        self.state = State.FAILURE
        return self

    def roll_back(self, error: BaseException) -> "ProcessResult":
        self.rollback = [self.source]
        self.error = error
        self.state = State.ROLLBACK
        return self

    def __repr__(self):
        counts = ', '.join(f"{k}={len(v)}" for k, v in self.routes().items())
        return f"ProcessResult({self.state}, {counts})"


class DecryptArchive:
    def __init__(
        self,
        password,
        mode: str = None,
        file_filter: str = None,
        scheme: str = None,
        chunk_size: int = None,
        absolute_base: str = None,
        filter_on_decrypt: bool = None
    ):
        self.mode = mode or config.mode
        if self.mode not in MODES:
            raise ValueError(f"Unknown mode {self.mode!r} (expected one of {', '.join(MODES)})")

        self.file_filter = file_filter if file_filter is not None else config.file_filter
        self.scheme_name = scheme or config.scheme
        self.chunk_size = chunk_size or config.chunk_size
        self.absolute_base = absolute_base if absolute_base is not None else config.absolute_base
        self.filter_on_decrypt = (
            filter_on_decrypt if filter_on_decrypt is not None else config.filter_on_decrypt
        )
        self._password = SecretPassword(password)

    def _create_scheme(self) -> ArchiveScheme:
        return create_scheme(
            self.scheme_name,
            self._password,
            chunk_size=self.chunk_size,
            absolute_base=self.absolute_base
        )

    def process(self, unit: FlowUnit) -> ProcessResult:
        start_time = time.time()
        if self.mode == DECRYPT_UNPACK_MODE:
            result = self._decrypt_and_unpack(unit)
        else:
            result = self._decrypt_only(unit)
        result.elapsed = time.time() - start_time
        return result

    # ── Decrypt only ───────────────────────────────────────────────────────

    def _decrypt_only(self, unit: FlowUnit) -> ProcessResult:
        result = ProcessResult(unit)

        try:
            entry_filter = EntryFilter(self.file_filter) if self.filter_on_decrypt else None
            scheme = self._create_scheme()
        except InitializationFailure as e:
            logger.error(f"Failed to initialize decryption for {unit.filename}: {e}")
            return result.roll_back(e)

        logger.info(f"🔓 Decrypting: {unit.filename}")
        decrypted = unit.create_child()
        try:
            result.state = State.READING
            with scheme, unit.open() as stream, decrypted.writer() as sink:
                written = scheme.decrypt(stream, sink, entry_filter)
                if written == 0:
                    raise EmptyArchive(f"{unit.filename} has no entries")

            result.state = State.FINALIZING
            attributes = {k: v for k, v in unit.attributes.items() if k != UUID}
            scheme.update_attributes(attributes)
            decrypted.put_all_attributes(attributes)

        except EmptyArchive as e:
            logger.error(
                f"Unable to decrypt {unit.filename} because it does not appear "
                f"to have any entries; routing to failure"
            )
            decrypted.discard()
            return result.fail(e)
        except ArchiveError as e:
            logger.error(f"Cannot decrypt {unit.filename}: {e}; routing to failure")
            decrypted.discard()
            return result.fail(e)
        except Exception as e:
            logger.error(f"Cannot decrypt {unit.filename}: {e}; routing to failure", exc_info=True)
            decrypted.discard()
            return result.fail(e)

        logger.info(f"✅ Decrypted {unit.filename} ({written} entries, {decrypted.size} bytes)")
        return result.succeed([decrypted])

    # ── Decrypt and unpack ─────────────────────────────────────────────────

    def _decrypt_and_unpack(self, unit: FlowUnit) -> ProcessResult:
        result = ProcessResult(unit)

        try:
            entry_filter = EntryFilter(self.file_filter)
            scheme = self._create_scheme()
        except InitializationFailure as e:
            logger.error(f"Failed to initialize decryption for {unit.filename}: {e}")
            return result.roll_back(e)

        logger.info(f"🔓 Unpacking: {unit.filename}")
        grouper = FragmentGrouper()
        try:
            result.state = State.READING
            with scheme:
                unpacked = scheme.unpack(unit, entry_filter, grouper)
            if not unpacked:
                raise EmptyArchive(f"{unit.filename} has no matching entries")
        except EmptyArchive as e:
            logger.error(
                f"Unable to unpack {unit.filename} because it does not appear "
                f"to have any entries; routing to failure"
            )
            return result.fail(e)
        except ArchiveError as e:
            logger.error(f"Unable to unpack {unit.filename} due to {e}; routing to failure")
            return result.fail(e)
        except Exception as e:
            logger.error(f"Unable to unpack {unit.filename} due to {e}; routing to failure", exc_info=True)
            return result.fail(e)

        result.state = State.FINALIZING
        if not grouper.finalize(unpacked, unit):
            logger.warning(f"Fragment attributes for {unit.filename} were not finalized")

        logger.info(f"✅ Unpacked {unit.filename} into {len(unpacked)} units")
        return result.succeed(unpacked)

    def close(self):
        self._password.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


__all__ = [
    "DecryptArchive",
    "ProcessResult",
    "State",
    "REL_SUCCESS",
    "REL_ORIGINAL",
    "REL_FAILURE",
    "REL_ROLLBACK",
    "DECRYPT_ONLY_MODE",
    "DECRYPT_UNPACK_MODE",
]
