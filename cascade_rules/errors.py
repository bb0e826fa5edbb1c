"""Error types for cascade-rules with source location context."""

from __future__ import annotations


class CascadeRulesError(Exception):
    """Base error with optional source location."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.message = message
        self.line = line
        self.column = column
        loc = ""
        if line is not None:
            loc = f" (line {line}"
            if column is not None:
                loc += f", col {column}"
            loc += ")"
        super().__init__(f"{message}{loc}")


class ParseError(CascadeRulesError):
    """Raised when a rule record or clause cannot be parsed."""


class ValidationError(CascadeRulesError):
    """Reported by the rule linter for text the engine would not accept cleanly."""


class UnknownReferenceError(ValidationError):
    """A document-type identifier that is not in the catalog."""

    def __init__(self, identifier: str, line: int | None = None, column: int | None = None):
        self.identifier = identifier
        super().__init__(f"Unknown document type '{identifier}'", line=line, column=column)


class PersistenceError(CascadeRulesError):
    """A record store write failed for one document."""

    def __init__(self, message: str, record_id: str | None = None):
        self.record_id = record_id
        super().__init__(message)
