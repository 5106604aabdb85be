"""Typed exceptions shared by the persistence, resolver and recorder layers."""


class LinktraceError(Exception):
    """Base class for all service errors."""


class NotFoundError(LinktraceError):
    """Unknown or reserved short code (or click id)."""


class CodeExhaustedError(LinktraceError):
    """Could not find a free short code within the retry budget."""

    def __init__(self, attempts: int):
        super().__init__(f"No free short code after {attempts} attempts")
        self.attempts = attempts


class PersistenceError(LinktraceError):
    """Store operation failed."""


class CodeConflictError(PersistenceError):
    """Insert rejected because the short code is already taken."""

    def __init__(self, code: str):
        super().__init__(f"Short code already taken: {code}")
        self.code = code
