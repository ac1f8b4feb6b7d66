"""Exceptions raised by the capture and analysis harness."""


class HarnessError(Exception):
    """Base class for harness failures."""


class InvalidPhaseError(HarnessError, ValueError):
    """A snapshot phase tag outside baseline/target/final was supplied."""

    def __init__(self, tag, recognized):
        self.tag = tag
        self.recognized = tuple(recognized)
        super().__init__(
            f"Invalid tag: {tag}. Must be one of: {', '.join(self.recognized)}"
        )


class CaptureIOError(HarnessError, OSError):
    """Directory creation or snapshot write failed during capture."""


class AnalysisError(HarnessError, RuntimeError):
    """The external leak analyzer failed."""
