"""Write phase-tagged heap snapshots into the memlab directory layout.

The analyzer expects this layout under the output directory::

    data/cur/s1.heapsnapshot    baseline
    data/cur/s2.heapsnapshot    target
    data/cur/s3.heapsnapshot    final
    data/cur/snap-seq.json
    data/cur/run-meta.json

Snapshots can run to hundreds of megabytes, so chunks are written to
disk one at a time and never joined in memory.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Protocol, Union

from .errors import CaptureIOError
from .models import SnapshotPhase

logger = logging.getLogger(__name__)

SEQUENCE_FILE = "snap-seq.json"
RUN_META_FILE = "run-meta.json"
PARTIAL_SUFFIX = ".partial"


class HeapSession(Protocol):
    """What the capture needs from a browser debugging session."""

    def collect_garbage(self) -> None:
        ...

    def stream_heap_snapshot(self) -> Iterable[Union[bytes, str]]:
        """Yield the snapshot as ordered chunks."""
        ...


def data_dir(output_dir) -> Path:
    """Return the canonical ``data/cur`` directory for an output directory."""
    return Path(output_dir) / "data" / "cur"


def ensure_data_dir(output_dir) -> Path:
    """Create ``data/cur`` and any missing parents."""
    directory = data_dir(output_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CaptureIOError(f"Could not create snapshot directory {directory}: {e}") from e
    return directory


def expected_artifacts(output_dir) -> list:
    """All five files the analyzer reads, in capture order."""
    directory = data_dir(output_dir)
    files = [phase.filename for phase in SnapshotPhase]
    files += [SEQUENCE_FILE, RUN_META_FILE]
    return [directory / name for name in files]


def missing_artifacts(output_dir) -> list:
    """Return the layout files that do not exist yet."""
    return [path for path in expected_artifacts(output_dir) if not path.is_file()]


def capture_heap_snapshot(
    session: HeapSession,
    phase,
    output_dir="./memlab-output",
    strict_gc: bool = False,
) -> Path:
    """Take a heap snapshot for one phase and save it to disk.

    Args:
        session: Debugging session producing snapshot chunks.
        phase: A SnapshotPhase or one of "baseline", "target", "final".
        output_dir: Root of the memlab layout.
        strict_gc: Fail instead of warning when garbage collection
            cannot be triggered before the snapshot.

    Returns:
        Absolute path of the written snapshot file.

    Raises:
        InvalidPhaseError: Unknown phase tag. No file is created.
        CaptureIOError: The directory or file could not be written.
    """
    phase = SnapshotPhase.parse(phase)
    directory = ensure_data_dir(output_dir)
    snapshot_path = (directory / phase.filename).resolve()

    _collect_garbage(session, phase, strict_gc)

    logger.info("Taking %s heap snapshot...", phase.value)
    written = _write_chunks(session.stream_heap_snapshot(), snapshot_path)

    logger.info("Heap snapshot saved to: %s (%d bytes)", snapshot_path, written)
    return snapshot_path


def _collect_garbage(session: HeapSession, phase: SnapshotPhase, strict: bool) -> None:
    try:
        session.collect_garbage()
    except Exception as e:
        if strict:
            raise CaptureIOError(
                f"Garbage collection failed before {phase.value} snapshot: {e}"
            ) from e
        logger.warning(
            "Garbage collection failed before %s snapshot, retained sizes may be inflated: %s",
            phase.value, e,
        )


def _write_chunks(chunks: Iterable[Union[bytes, str]], target: Path) -> int:
    """Drain chunks in order into ``target`` via a partial file.

    The partial file only replaces ``target`` once every chunk is on
    disk; on any failure it is removed.
    """
    partial = target.with_name(target.name + PARTIAL_SUFFIX)
    written = 0
    try:
        with open(partial, "wb") as f:
            for chunk in _as_bytes(chunks):
                f.write(chunk)
                written += len(chunk)
        os.replace(partial, target)
    except OSError as e:
        _discard(partial)
        raise CaptureIOError(f"Could not write heap snapshot {target}: {e}") from e
    except BaseException:
        _discard(partial)
        raise
    return written


def _as_bytes(chunks: Iterable[Union[bytes, str]]) -> Iterator[bytes]:
    for chunk in chunks:
        if isinstance(chunk, str):
            yield chunk.encode("utf-8")
        elif isinstance(chunk, (bytes, bytearray, memoryview)):
            yield bytes(chunk)
        else:
            raise TypeError(f"Heap snapshot chunk must be str or bytes, got {type(chunk).__name__}")


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial snapshot %s: %s", path, e)
