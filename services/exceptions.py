"""
Errors raised by the progress snapshot engine.
"""


class SnapshotError(Exception):
    """Base class for snapshot computation failures."""

    def __init__(self, message, student_id=None):
        super().__init__(message)
        self.student_id = student_id


class DataAccessError(SnapshotError):
    """Reading activity records or writing a snapshot failed. Nothing was persisted."""


class MalformedRecordError(SnapshotError):
    """An activity record cannot be interpreted (e.g. its date is unparsable)."""
