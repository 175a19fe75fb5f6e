"""
Test Persistence
================

Repository interface consumed by the lifecycle manager, plus an in-memory
implementation for tests and single-process use.

Implementations raise ``PersistenceError`` for storage failures. A change is
committed only once ``save`` / ``update`` returns; callers retry the save
rather than recompute.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from variant_testing.core.models import ABTest
from variant_testing.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class Repository(ABC):
    """Key-by-id storage for tests."""

    @abstractmethod
    def load(self, test_id: str) -> Optional[ABTest]:
        """Return the stored test, or None if no test has that id."""

    @abstractmethod
    def save(self, test: ABTest) -> None:
        """Insert a new test."""

    @abstractmethod
    def update(self, test: ABTest) -> None:
        """Replace an existing test."""

    @abstractmethod
    def list_tests(self) -> List[ABTest]:
        """All stored tests, oldest first."""


class InMemoryRepository(Repository):
    """
    Dict-backed repository.

    Stores and returns deep copies, so a caller mutating a loaded test does
    not change stored state until it calls ``update``.
    """

    def __init__(self):
        self._tests: Dict[str, ABTest] = {}
        self._lock = threading.Lock()

    def load(self, test_id: str) -> Optional[ABTest]:
        with self._lock:
            test = self._tests.get(test_id)
            return copy.deepcopy(test) if test is not None else None

    def save(self, test: ABTest) -> None:
        with self._lock:
            if test.id in self._tests:
                raise PersistenceError(f"Test already exists: {test.id}", test.id)
            self._tests[test.id] = copy.deepcopy(test)
        logger.debug("Stored test %s", test.id)

    def update(self, test: ABTest) -> None:
        with self._lock:
            if test.id not in self._tests:
                raise PersistenceError(f"Cannot update unknown test: {test.id}", test.id)
            self._tests[test.id] = copy.deepcopy(test)
        logger.debug("Updated test %s", test.id)

    def list_tests(self) -> List[ABTest]:
        with self._lock:
            tests = sorted(self._tests.values(), key=lambda t: t.created_at)
            return [copy.deepcopy(t) for t in tests]

    def __len__(self) -> int:
        return len(self._tests)
