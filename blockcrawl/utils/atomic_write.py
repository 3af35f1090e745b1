"""Crash-safe JSON document writes.

Each write goes to a uniquely named temp file in a scratch directory, is
flushed and fsynced, optionally re-read for validation, then moved over the
destination with ``os.replace``. The rename is the commit point: a reader
of the destination sees either the whole previous document or the whole new
one.

Failed attempts remove their temp file and are retried after a fixed delay.
Once retries are exhausted a ``PersistenceError`` wraps the last failure.
"""

import asyncio
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    Retrying,
    stop_after_attempt,
    wait_fixed,
)

from blockcrawl.models.config import PersistenceConfig
from blockcrawl.observability.metrics import STATE_WRITES
from blockcrawl.utils.exceptions import PersistenceError

logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


def scratch_dir_for(path: Path, options: PersistenceConfig) -> Path:
    """Directory holding temp files for writes to ``path``.

    Must live on the same filesystem as the destination for the rename to
    be atomic.
    """
    if options.scratch_dir:
        return Path(options.scratch_dir)
    return path.parent / ".tmp"


class WriteSequencer:
    """Orders writes to one destination across threads.

    Every snapshot takes a generation with ``issue()`` before its write
    starts. The rename happens under a lock and only when the generation is
    newer than the last one committed, so a slow write of an older snapshot
    can never replace a newer document.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._issued = 0
        self._committed = 0

    def issue(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    @property
    def committed(self) -> int:
        return self._committed

    def commit(self, generation: int, replace: Callable[[], None]) -> bool:
        """Run ``replace`` if ``generation`` is the newest. Returns False if stale."""
        with self._lock:
            if generation <= self._committed:
                return False
            replace()
            self._committed = generation
            return True


def _verify_document(path: Path, what: str) -> None:
    with open(path, "r", encoding="utf-8") as f:
        content = json.load(f)

    if not isinstance(content, dict) or not content:
        raise ValueError(f"{what} is empty after write: {path}")


def _write_once(
    path: Path,
    document: Dict[str, Any],
    options: PersistenceConfig,
    sequencer: Optional[WriteSequencer] = None,
    generation: int = 0,
) -> bool:
    scratch = scratch_dir_for(path, options)
    scratch.mkdir(parents=True, exist_ok=True)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(
        prefix=f"{path.name}.", suffix=".tmp", dir=str(scratch)
    )
    temp_file = Path(temp_name)

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())

        if options.verify:
            _verify_document(temp_file, "temp file")

        if sequencer is None:
            os.replace(temp_file, path)
        elif not sequencer.commit(generation, lambda: os.replace(temp_file, path)):
            temp_file.unlink(missing_ok=True)
            logger.debug(
                "atomic_write_superseded",
                path=str(path),
                generation=generation,
                committed=sequencer.committed,
            )
            return False

        if options.verify:
            _verify_document(path, "destination")

    except Exception:
        temp_file.unlink(missing_ok=True)
        raise

    return True


def _retry_kwargs(path: Path, options: PersistenceConfig) -> Dict[str, Any]:
    document = path.stem

    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        STATE_WRITES.labels(document=document, status="retry").inc()
        logger.warning(
            "atomic_write_retry",
            path=str(path),
            attempt=retry_state.attempt_number,
            max_attempts=options.max_retries,
            error=str(error),
        )

    return {
        "stop": stop_after_attempt(options.max_retries),
        "wait": wait_fixed(options.retry_delay_seconds),
        "before_sleep": before_sleep,
    }


def _exhausted(path: Path, error: RetryError) -> PersistenceError:
    last = error.last_attempt.exception()
    STATE_WRITES.labels(document=path.stem, status="failed").inc()
    logger.error(
        "atomic_write_failed",
        path=str(path),
        attempts=error.last_attempt.attempt_number,
        error=str(last),
    )
    return PersistenceError(f"Atomic write failed for {path}: {last}", path=str(path))


async def atomic_write_json(
    path: PathLike,
    document: Dict[str, Any],
    options: Optional[PersistenceConfig] = None,
    sequencer: Optional[WriteSequencer] = None,
    generation: int = 0,
) -> bool:
    """Atomically write a JSON document without blocking the event loop.

    Args:
        path: Destination file
        document: JSON-serializable dict (must be non-empty when verifying)
        options: Retry and validation settings
        sequencer: Orders this write against other writes to the same file
        generation: Value from ``sequencer.issue()`` taken with the snapshot

    Returns:
        False if a newer generation was already committed

    Raises:
        PersistenceError: If every attempt failed
    """
    options = options or PersistenceConfig()
    target = Path(path)

    try:
        async for attempt in AsyncRetrying(**_retry_kwargs(target, options)):
            with attempt:
                committed = await asyncio.to_thread(
                    _write_once, target, document, options, sequencer, generation
                )
    except RetryError as e:
        raise _exhausted(target, e) from e.last_attempt.exception()

    STATE_WRITES.labels(
        document=target.stem, status="success" if committed else "superseded"
    ).inc()
    return committed


def atomic_write_json_sync(
    path: PathLike,
    document: Dict[str, Any],
    options: Optional[PersistenceConfig] = None,
    sequencer: Optional[WriteSequencer] = None,
    generation: int = 0,
) -> bool:
    """Blocking variant of ``atomic_write_json``.

    For signal handlers and other places where no further event loop turn
    is guaranteed. Takes the same ordering arguments.

    Raises:
        PersistenceError: If every attempt failed
    """
    options = options or PersistenceConfig()
    target = Path(path)

    try:
        for attempt in Retrying(**_retry_kwargs(target, options)):
            with attempt:
                committed = _write_once(target, document, options, sequencer, generation)
    except RetryError as e:
        raise _exhausted(target, e) from e.last_attempt.exception()

    STATE_WRITES.labels(
        document=target.stem, status="success" if committed else "superseded"
    ).inc()
    return committed
