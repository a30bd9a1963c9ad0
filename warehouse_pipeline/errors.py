"""
Exceptions raised by the warehouse load.

Field-level problems are corrected inline by the transforms and never raised.
These exceptions are for table-level failures that abort a layer load.
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for table-level load failures."""

    code = 50000

    def __init__(self, message: str, code: Optional[int] = None, state: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.state = state


class SourceReadError(PipelineError):
    """A source file is missing or unreadable."""

    code = 50001


class SchemaError(PipelineError):
    """A table or column the load depends on does not exist."""

    code = 50002


class LoadError(PipelineError):
    """Inserting transformed rows into a target table was rejected."""

    code = 50003
