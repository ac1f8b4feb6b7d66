"""memlab-harness - Capture heap snapshots and report memory leaks.

Takes JavaScript heap snapshots of a browser page at three points of an
interaction (baseline, target, final), lays them out the way memlab
expects, runs memlab's leak detection and renders the findings.

Basic usage:
    from memlab_harness import analyze_memory_leaks

    leaks = analyze_memory_leaks("./memlab-snapshots", "text", "memlab-report")

Capturing with your own session:
    from memlab_harness import LeakHarness

    harness = LeakHarness("./memlab-snapshots")
    harness.capture(session, [load_page, click_target, go_back])
    leaks = harness.analyze("json", "memlab-report")
"""

__version__ = "0.1.0"

from .errors import (
    HarnessError,
    InvalidPhaseError,
    CaptureIOError,
    AnalysisError,
)
from .models import (
    SnapshotPhase,
    SequenceStep,
    RunDescriptor,
    TraceNode,
    PathTrace,
    OpaqueTrace,
    UnavailableTrace,
    LeakRecord,
    Report,
)
from .formatting import format_bytes
from .snapshot import HeapSession, capture_heap_snapshot, missing_artifacts
from .metadata import write_sequence_descriptor, write_run_descriptor
from .analyzer import LeakAnalyzer, MemlabAnalyzer
from .renderer import render_report, render_text_report
from .orchestrator import HarnessState, LeakHarness, analyze_memory_leaks
from .cli import main

__all__ = [
    # Errors
    "HarnessError",
    "InvalidPhaseError",
    "CaptureIOError",
    "AnalysisError",
    # Models
    "SnapshotPhase",
    "SequenceStep",
    "RunDescriptor",
    "TraceNode",
    "PathTrace",
    "OpaqueTrace",
    "UnavailableTrace",
    "LeakRecord",
    "Report",
    # Capture
    "format_bytes",
    "HeapSession",
    "capture_heap_snapshot",
    "missing_artifacts",
    "write_sequence_descriptor",
    "write_run_descriptor",
    # Analysis and reporting
    "LeakAnalyzer",
    "MemlabAnalyzer",
    "render_report",
    "render_text_report",
    "HarnessState",
    "LeakHarness",
    "analyze_memory_leaks",
    # CLI
    "main",
]
