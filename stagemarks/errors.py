from __future__ import annotations


class StageError(Exception):
    """Base class for errors reported by stagemarks operations."""


class MalformedInput(StageError):
    """Payload is not a recognizable record list or bookmark document."""


class InvalidRecord(StageError):
    """A single imported record failed validation; decoders count and drop it."""


class NoValidRecords(StageError):
    def __init__(self, skipped: int = 0):
        super().__init__(f"No valid bookmarks found ({skipped} skipped)")
        self.skipped = skipped


class CollaboratorError(StageError):
    """A call into the host bookmark tree failed."""

    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class OperationInProgress(StageError):
    def __init__(self, running: str):
        super().__init__(f"another operation is already running ({running})")
        self.running = running
