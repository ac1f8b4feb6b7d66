"""Write the snap-seq.json and run-meta.json side files."""

import json
import logging
import time
from pathlib import Path
from typing import Optional, Sequence

from .errors import CaptureIOError
from .models import RunDescriptor, SequenceStep, SnapshotPhase
from .snapshot import RUN_META_FILE, SEQUENCE_FILE, ensure_data_dir

logger = logging.getLogger(__name__)


def build_sequence(
    heap_sizes: Optional[Sequence[Optional[int]]] = None,
    action_name: Optional[str] = None,
) -> list:
    """Build the three sequence steps in phase order.

    Heap sizes are matched to phases by position; a short or missing
    list is padded with None and extra entries are ignored.
    """
    sizes = list(heap_sizes or [])[:len(SnapshotPhase)]
    sizes += [None] * (len(SnapshotPhase) - len(sizes))

    steps = []
    for phase, size in zip(SnapshotPhase, sizes):
        name = phase.default_step_name
        if phase is SnapshotPhase.TARGET and action_name:
            name = action_name
        steps.append(SequenceStep(name=name, phase=phase, heap_used_size=size))
    return steps


def write_sequence_descriptor(
    output_dir="./memlab-output",
    heap_sizes: Optional[Sequence[Optional[int]]] = None,
    action_name: Optional[str] = None,
) -> Path:
    """Write snap-seq.json describing the baseline/target/final steps.

    Args:
        output_dir: Root of the memlab layout.
        heap_sizes: Observed JS heap used size per phase, entries may be None.
        action_name: Name for the target step (defaults to "action-on-page").

    Returns:
        Path of the written file.
    """
    steps = build_sequence(heap_sizes, action_name)
    path = ensure_data_dir(output_dir) / SEQUENCE_FILE
    _write_json(path, [step.to_dict() for step in steps])
    return path


def write_run_descriptor(
    output_dir="./memlab-output",
    browser_name: Optional[str] = None,
    browser_version: Optional[str] = None,
    user_agent: Optional[str] = None,
    test_name: Optional[str] = None,
) -> Path:
    """Write run-meta.json with browser details and the capture time."""
    defaults = RunDescriptor()
    descriptor = RunDescriptor(
        browser_name=browser_name or defaults.browser_name,
        browser_version=browser_version or defaults.browser_version,
        user_agent=user_agent or defaults.user_agent,
        test_name=test_name or defaults.test_name,
        timestamp=int(time.time() * 1000),
    )
    path = ensure_data_dir(output_dir) / RUN_META_FILE
    _write_json(path, descriptor.to_dict())
    return path


def _write_json(path: Path, payload) -> None:
    try:
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    except OSError as e:
        raise CaptureIOError(f"Could not write {path}: {e}") from e
    logger.debug("Wrote %s", path)
