"""Render leak findings to text and JSON reports."""

import json
from typing import Optional

from .formatting import format_bytes, utc_timestamp
from .models import LeakRecord, OpaqueTrace, PathTrace, Report

REPORT_MODES = ("console", "json", "text")

INDENT = "    "
RULE = "-----------------------------------"

NO_LEAKS_LINE = "No memory leaks detected."
TRACE_UNAVAILABLE_LINE = "Trace details unavailable or in an unexpected format."


def render_report(leaks: list, directory: str, mode: str = "console") -> Report:
    """Render leaks into a Report for the given mode.

    JSON mode embeds each leak as the analyzer returned it; console and
    text modes render the text tree. Inputs are never modified.

    Args:
        leaks: Leak records (raw analyzer dicts are accepted too).
        directory: Absolute snapshot directory the leaks came from.
        mode: One of "console", "json", "text".

    Returns:
        Report whose ``content`` is the serialized output.
    """
    if mode not in REPORT_MODES:
        raise ValueError(f"Unknown report mode: {mode}. Must be one of: {', '.join(REPORT_MODES)}")

    records = [LeakRecord.from_raw(leak) for leak in leaks]
    report = Report(
        timestamp=utc_timestamp(),
        directory=str(directory),
        mode=mode,
        leaks=records,
    )

    if mode == "json":
        report.content = json.dumps(report.to_dict(), indent=2, default=str)
    else:
        report.content = render_text_report(records, report.directory, report.timestamp)
    return report


def render_text_report(leaks: list, directory: str, timestamp: Optional[str] = None) -> str:
    """Render the text leak report with size-annotated traces."""
    records = [LeakRecord.from_raw(leak) for leak in leaks]
    lines = []

    _render_header(lines, records, directory, timestamp or utc_timestamp())

    if not records:
        lines.append(NO_LEAKS_LINE)
    else:
        lines.append("Memory Leaks Detected:")
        for number, leak in enumerate(records, 1):
            _render_leak(lines, number, leak)

    return "\n".join(lines) + "\n"


def _render_header(lines: list, leaks: list, directory: str, timestamp: str) -> None:
    lines.append("--- Memlab Leak Analysis Report ---")
    lines.append(f"Timestamp: {timestamp}")
    lines.append(f"Snapshot Directory: {directory}")
    lines.append(f"Leaks Found: {len(leaks)}")
    lines.append(RULE)
    lines.append("")


def _render_leak(lines: list, number: int, leak: LeakRecord) -> None:
    """Render one numbered leak block."""
    node_count = leak.node_count
    lines.append("")
    lines.append(f"Leak #{number}:")
    lines.append(f"  Retained Size: {format_bytes(leak.retained_size)}")
    lines.append(f"  Leaked Nodes: {node_count if node_count is not None else 'N/A'}")
    lines.append("  Trace:")
    lines.extend(render_trace_lines(leak.trace))
    lines.append(RULE)


def render_trace_lines(trace) -> list:
    """Render a trace as indented lines.

    Path traces indent one unit deeper per retainer step. Never raises;
    unknown shapes render a placeholder line.
    """
    if isinstance(trace, PathTrace) and trace.nodes:
        lines = []
        for depth, node in enumerate(trace.nodes, 1):
            text = node.label
            if node.edge:
                text = f"-[{node.edge}]-> {text}"
            size = format_bytes(node.retained_size or 0)
            lines.append(f"{INDENT * depth}{text} (id: {node.id}, retainedSize: {size})")
        return lines

    if isinstance(trace, OpaqueTrace):
        return [INDENT + line for line in trace.text.split("\n")]

    return [INDENT + TRACE_UNAVAILABLE_LINE]
