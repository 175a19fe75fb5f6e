"""Error types raised by the experimentation engine."""

from typing import List, Optional


class ABTestingError(Exception):
    """Base class for engine errors."""


class ValidationError(ABTestingError, ValueError):
    """Invalid test configuration or metric update.

    Carries every violation found, not only the first one.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(ABTestingError, LookupError):
    """Unknown test or variant id."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class InvalidStateError(ABTestingError):
    """Operation not allowed in the test's current status."""

    def __init__(self, test_id: str, status: str, operation: str):
        self.test_id = test_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} test {test_id} in status '{status}'"
        )


class PersistenceError(ABTestingError):
    """Repository failed to load or store a test."""

    def __init__(self, message: str, test_id: Optional[str] = None):
        self.test_id = test_id
        super().__init__(message)
