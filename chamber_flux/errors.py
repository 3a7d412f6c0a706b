"""
errors.py
---------

Caller-input failures. These are the only errors the flux pipeline lets
escape: malformed rows, unassigned chambers, unusable files and degenerate
regressions are absorbed where they occur.
"""

from __future__ import annotations


class FluxInputError(ValueError):
    """A required input is missing or refers to something that does not exist."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "field": self.field}


class MissingInputError(FluxInputError):
    def __init__(self, field: str, message: str | None = None):
        super().__init__(field, message or f"Missing required input: {field}")


class UnknownChamberError(FluxInputError):
    def __init__(self, chamber, source: str | None = None):
        where = f" in {source}" if source else ""
        super().__init__("chamber", f"Chamber {chamber} not found{where}")
        self.chamber = chamber


class UnknownFileError(FluxInputError, FileNotFoundError):
    def __init__(self, path):
        super().__init__("file", f"Data file not found: {path}")
        self.path = path


__all__ = [
    "FluxInputError",
    "MissingInputError",
    "UnknownChamberError",
    "UnknownFileError",
]
