"""Data models for heap snapshot capture and leak reporting."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .errors import InvalidPhaseError

SNAPSHOT_EXTENSION = ".heapsnapshot"

# Step names used in snap-seq.json when the caller does not name a step
DEFAULT_STEP_NAMES = ("page-load", "action-on-page", "revert")


class SnapshotPhase(Enum):
    """The three points of an interaction at which the heap is captured."""
    BASELINE = "baseline"  # s1 - initial page load
    TARGET = "target"  # s2 - after the action under test
    FINAL = "final"  # s3 - after reverting the action

    @classmethod
    def parse(cls, tag) -> "SnapshotPhase":
        """Resolve a tag string (or phase) to a phase, or raise InvalidPhaseError."""
        if isinstance(tag, cls):
            return tag
        for phase in cls:
            if phase.value == tag:
                return phase
        raise InvalidPhaseError(tag, [phase.value for phase in cls])

    @property
    def index(self) -> int:
        """1-based position in the capture sequence."""
        return list(SnapshotPhase).index(self) + 1

    @property
    def filename(self) -> str:
        return f"s{self.index}{SNAPSHOT_EXTENSION}"

    @property
    def default_step_name(self) -> str:
        return DEFAULT_STEP_NAMES[self.index - 1]


@dataclass
class SequenceStep:
    """One entry of the interaction sequence written to snap-seq.json."""
    name: str
    phase: SnapshotPhase
    heap_used_size: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "snapshot": True,
            "type": self.phase.value,
            "idx": self.phase.index,
            "JSHeapUsedSize": self.heap_used_size,
        }


@dataclass
class RunDescriptor:
    """Browser and run context written to run-meta.json."""
    browser_name: str = "chromium"
    browser_version: str = ""
    user_agent: str = ""
    test_name: str = "memory-leak-test"
    timestamp: Optional[int] = None  # epoch milliseconds, set at write time

    def to_dict(self) -> dict:
        return {
            "browser": {
                "name": self.browser_name,
                "version": self.browser_version,
                "userAgent": self.user_agent,
            },
            "timestamp": self.timestamp,
            "testName": self.test_name,
        }


@dataclass
class TraceNode:
    """A node on a leak's retainer path."""
    id: Any = None
    name: Optional[str] = None
    type: Optional[str] = None
    edge: Optional[str] = None
    retained_size: Any = 0

    @property
    def label(self) -> str:
        return self.name or self.type or f"Node {self.id}"

    @classmethod
    def from_raw(cls, raw) -> "TraceNode":
        if not isinstance(raw, dict):
            return cls(name=str(raw))
        return cls(
            id=raw.get("id"),
            name=raw.get("name") or None,
            type=raw.get("type") or None,
            edge=raw.get("edge") or None,
            retained_size=raw.get("retainedSize") or 0,
        )


@dataclass
class PathTrace:
    """Trace given as an ordered retainer chain."""
    nodes: list = field(default_factory=list)


@dataclass
class OpaqueTrace:
    """Trace only available as text."""
    text: str


@dataclass
class UnavailableTrace:
    """Trace missing or in a shape that cannot be shown."""


Trace = Union[PathTrace, OpaqueTrace, UnavailableTrace]


def classify_trace(raw) -> Trace:
    """Decide the trace representation of a raw leak trace.

    A mapping with a ``path`` list becomes a PathTrace; strings and
    non-empty mappings become OpaqueTrace text; objects defining their
    own ``__str__`` are shown through it. Anything else is unavailable.
    """
    if raw is None:
        return UnavailableTrace()

    if isinstance(raw, dict):
        path = raw.get("path")
        if isinstance(path, list):
            return PathTrace(nodes=[TraceNode.from_raw(node) for node in path])
        if not raw:
            return UnavailableTrace()
        try:
            return OpaqueTrace(text=json.dumps(raw, indent=2, default=str))
        except (TypeError, ValueError):
            return UnavailableTrace()

    if isinstance(raw, str):
        return OpaqueTrace(text=raw) if raw.strip() else UnavailableTrace()

    if type(raw).__str__ is object.__str__:
        return UnavailableTrace()
    try:
        text = str(raw)
    except Exception:
        return UnavailableTrace()
    return OpaqueTrace(text=text) if text.strip() else UnavailableTrace()


@dataclass
class LeakRecord:
    """One leak finding returned by the analyzer.

    ``raw`` keeps the analyzer's original object so JSON reports can
    reproduce it verbatim; ``trace`` is decided once at construction.
    """
    retained_size: Any = 0
    nodes: Optional[list] = None
    trace: Trace = field(default_factory=UnavailableTrace)
    raw: Any = None
    from_analyzer: bool = False

    @property
    def node_count(self) -> Optional[int]:
        return len(self.nodes) if self.nodes is not None else None

    @classmethod
    def from_raw(cls, raw) -> "LeakRecord":
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, dict):
            return cls(trace=classify_trace(raw), raw=raw, from_analyzer=True)
        nodes = raw.get("nodes")
        return cls(
            retained_size=raw.get("retainedSize", 0),
            nodes=list(nodes) if isinstance(nodes, (list, tuple)) else None,
            trace=classify_trace(raw.get("trace")),
            raw=raw,
            from_analyzer=True,
        )

    def to_dict(self) -> Any:
        if self.from_analyzer:
            return self.raw
        return {
            "retainedSize": self.retained_size,
            "nodes": self.nodes,
        }


@dataclass
class Report:
    """A rendered leak report.

    ``content`` holds the serialized report: pretty JSON in json mode,
    the text tree otherwise.
    """
    timestamp: str
    directory: str
    mode: str
    leaks: list = field(default_factory=list)
    content: str = ""

    @property
    def count(self) -> int:
        return len(self.leaks)

    def to_dict(self) -> dict:
        return {
            "reportTimestamp": self.timestamp,
            "snapshotDirectory": self.directory,
            "leaksFound": self.count,
            "leaks": [leak.to_dict() for leak in self.leaks],
        }
