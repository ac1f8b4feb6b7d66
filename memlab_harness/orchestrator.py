"""Sequence snapshot capture, leak analysis and reporting."""

import logging
import traceback
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from .analyzer import LeakAnalyzer, MemlabAnalyzer
from .errors import CaptureIOError
from .formatting import utc_timestamp
from .metadata import write_run_descriptor, write_sequence_descriptor
from .models import SnapshotPhase
from .renderer import REPORT_MODES, render_report
from .snapshot import HeapSession, capture_heap_snapshot, missing_artifacts

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = {"json": ".json", "text": ".txt"}


class HarnessState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    ANALYZING = "analyzing"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


class LeakHarness:
    """Drive one baseline/target/final capture and its leak report.

    ``capture`` takes the three snapshots and writes the metadata;
    ``analyze`` runs the analyzer over the directory and writes the
    report. ``analyze`` may also be called on a fresh harness to report
    on a directory captured earlier.
    """

    def __init__(self, output_dir="./memlab-snapshots", analyzer: Optional[LeakAnalyzer] = None):
        self.output_dir = Path(output_dir).resolve()
        self.analyzer = analyzer or MemlabAnalyzer()
        self.state = HarnessState.IDLE
        self.snapshot_paths = []
        self.heap_sizes = []
        self.report = None
        self.report_path = None
        self._captured = False

    def capture(
        self,
        session: HeapSession,
        interactions: Sequence[Optional[Callable[[], None]]] = (),
        run_info: Optional[dict] = None,
        action_name: Optional[str] = None,
        strict_gc: bool = False,
    ) -> list:
        """Take the baseline, target and final snapshots in order.

        Args:
            session: Debugging session the snapshots are streamed from.
            interactions: Up to three callables, run before the snapshot
                of the matching phase to bring the page into that state.
            run_info: Keyword arguments for ``write_run_descriptor``.
            action_name: Name of the target step in snap-seq.json.
            strict_gc: Fail when garbage collection cannot be triggered.

        Returns:
            The three snapshot paths in phase order.
        """
        self._require(HarnessState.IDLE)
        self.state = HarnessState.CAPTURING
        steps = list(interactions)[:len(SnapshotPhase)]
        steps += [None] * (len(SnapshotPhase) - len(steps))

        try:
            for phase, interact in zip(SnapshotPhase, steps):
                if interact is not None:
                    interact()
                path = capture_heap_snapshot(session, phase, self.output_dir, strict_gc=strict_gc)
                self.snapshot_paths.append(path)
                self.heap_sizes.append(_probe_heap_size(session, phase))

            write_sequence_descriptor(self.output_dir, self.heap_sizes, action_name)
            write_run_descriptor(self.output_dir, **(run_info or {}))

            missing = missing_artifacts(self.output_dir)
            if missing:
                raise CaptureIOError(
                    "Snapshot layout incomplete, missing: " + ", ".join(str(p) for p in missing)
                )
        except BaseException:
            self.state = HarnessState.FAILED
            raise

        self._captured = True
        logger.info("MemLab test artifacts generated at: %s", self.output_dir / "data" / "cur")
        return list(self.snapshot_paths)

    def analyze(self, output_format: str = "console", output_file: str = "memlab-report") -> list:
        """Find leaks in the output directory and report them.

        Text and JSON reports are written to ``<output_file>.txt`` or
        ``<output_file>.json``; console reports go to stdout. If analysis
        or reporting fails in a file mode, ``<output_file>-error.log`` is
        written before the original error is re-raised.

        Returns:
            The leak records found.
        """
        if output_format not in REPORT_MODES:
            raise ValueError(
                f"Unknown output format: {output_format}. Must be one of: {', '.join(REPORT_MODES)}"
            )
        if self.state is HarnessState.CAPTURING and not self._captured:
            raise RuntimeError("Capture has not finished")
        if self.state not in (HarnessState.IDLE, HarnessState.CAPTURING):
            raise RuntimeError(f"Cannot analyze from state {self.state.value}")

        try:
            self.state = HarnessState.ANALYZING
            logger.info("Analyzing memory snapshots from %s...", self.output_dir)
            leaks = self.analyzer.analyze(self.output_dir)
            logger.info("Memory leak analysis completed.")

            self.state = HarnessState.REPORTING
            self.report = render_report(leaks, str(self.output_dir), output_format)
            if output_format in FILE_EXTENSIONS:
                self.report_path = Path(output_file + FILE_EXTENSIONS[output_format]).resolve()
                self.report_path.write_text(self.report.content, encoding="utf-8")
                logger.info("%s report saved to: %s", output_format.upper(), self.report_path)
            else:
                print("\n" + self.report.content)
        except Exception as error:
            self.state = HarnessState.FAILED
            logger.error("Error during memory leak analysis: %s", error)
            if output_format in FILE_EXTENSIONS:
                self._write_error_log(error, output_format, output_file)
            raise

        self.state = HarnessState.DONE
        return leaks

    def run(
        self,
        session: HeapSession,
        interactions: Sequence[Optional[Callable[[], None]]] = (),
        output_format: str = "console",
        output_file: str = "memlab-report",
        **capture_options,
    ) -> list:
        """Capture all three phases, then analyze and report."""
        self.capture(session, interactions, **capture_options)
        return self.analyze(output_format, output_file)

    def _require(self, state: HarnessState) -> None:
        if self.state is not state:
            raise RuntimeError(f"Expected state {state.value}, harness is {self.state.value}")

    def _write_error_log(self, error: BaseException, output_format: str, output_file: str) -> None:
        error_path = Path(output_file + "-error.log").resolve()
        detail = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        lines = [
            f"Analysis Error at {utc_timestamp()}",
            f"Directory: {self.output_dir}",
            f"Format: {output_format}",
            f"Output File Base: {output_file}",
            "",
            "Error Stack:",
            detail or repr(error),
        ]
        try:
            error_path.write_text("\n".join(lines), encoding="utf-8")
        except OSError as write_error:
            logger.error("Additionally, failed to write error log file: %s", write_error)
            return
        logger.error("Analysis error details saved to: %s", error_path)


def analyze_memory_leaks(
    work_dir="./memlab-snapshots",
    output_format: str = "console",
    output_file: str = "memlab-report",
    analyzer: Optional[LeakAnalyzer] = None,
) -> list:
    """Analyze an already captured snapshot directory and report the leaks."""
    harness = LeakHarness(work_dir, analyzer=analyzer)
    return harness.analyze(output_format, output_file)


def _probe_heap_size(session: HeapSession, phase: SnapshotPhase) -> Optional[int]:
    """Ask the session for JS heap used size; None when unsupported or failing."""
    probe = getattr(session, "heap_used_size", None)
    if probe is None:
        return None
    try:
        return probe()
    except Exception as e:
        logger.warning("Heap usage unavailable for %s phase: %s", phase.value, e)
        return None
