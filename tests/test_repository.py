"""Tests for the in-memory repository."""

import pytest

from variant_testing.core.models import ABTestStatus
from variant_testing.exceptions import PersistenceError


class TestInMemoryRepository:
    """Tests for copy semantics and error handling."""

    def test_load_missing(self, repository):
        assert repository.load("missing") is None

    def test_loaded_copy_is_detached(self, manager, repository, running_test):
        loaded = repository.load(running_test.id)
        loaded.status = ABTestStatus.CANCELLED

        assert repository.load(running_test.id).status is ABTestStatus.RUNNING

    def test_duplicate_save(self, repository, running_test):
        with pytest.raises(PersistenceError, match="already exists"):
            repository.save(running_test)

    def test_update_unknown(self, repository, running_test):
        orphan = repository.load(running_test.id)
        orphan.id = "ab-test-orphan"
        with pytest.raises(PersistenceError, match="unknown test"):
            repository.update(orphan)

    def test_list_oldest_first(self, manager, repository, config, variant_specs, clock):
        first = manager.create_test(config, variant_specs)
        clock.advance(hours=1)
        second = manager.create_test(config, variant_specs)

        assert [t.id for t in repository.list_tests()] == [first.id, second.id]
        assert len(repository) == 2
