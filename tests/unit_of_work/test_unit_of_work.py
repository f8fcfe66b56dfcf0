import pytest
from mock import patch

from multiform import UnitOfWork, current_uow
from multiform.adapters.repository.memory import MemorySession
from multiform.exceptions import (
    InvalidOperationError,
    PersistenceError,
    TransactionError,
)

from ..elements import Person


class TestUnitOfWorkInitialization:
    def test_uow_can_be_initiated_with_context_manager(self):
        with UnitOfWork() as uow:
            assert uow is not None
            assert uow.in_progress is True

        assert uow.in_progress is False

    def test_uow_can_be_initiated_explicitly(self):
        uow = UnitOfWork()
        assert uow.in_progress is False

        uow.start()
        assert uow.in_progress is True
        uow.rollback()

    def test_that_uow_throws_exception_on_commit_or_rollback_without_being_started(
        self,
    ):
        uow = UnitOfWork()

        with pytest.raises(InvalidOperationError):
            uow.commit()

        with pytest.raises(InvalidOperationError):
            uow.rollback()

    def test_uow_cannot_be_started_twice(self):
        uow = UnitOfWork()
        uow.start()

        with pytest.raises(InvalidOperationError):
            uow.start()

        uow.rollback()

    def test_that_uow_can_be_started_manually(self):
        uow = UnitOfWork()

        uow.start()
        uow.commit()  # `commit` should not raise exception

        uow.start()
        uow.rollback()  # `rollback` should not raise exception

    def test_current_uow_is_set_only_inside_the_block(self):
        assert not current_uow

        with UnitOfWork() as uow:
            assert current_uow._get_current_object() is uow

        assert not current_uow


class TestTransactions:
    def test_changes_are_visible_after_commit(self, provider):
        with UnitOfWork():
            provider.save(Person(first_name="John"))

            # Reads inside share the transaction
            assert len(provider.find_where(Person)) == 1

        assert len(provider.find_where(Person)) == 1

    def test_changes_are_discarded_on_rollback(self, provider):
        uow = UnitOfWork()
        uow.start()
        provider.save(Person(first_name="John"))
        uow.rollback()

        assert provider.find_where(Person) == []

    def test_exception_inside_block_rolls_back_and_propagates(self, provider):
        with pytest.raises(RuntimeError):
            with UnitOfWork():
                provider.save(Person(first_name="John"))
                raise RuntimeError("Test exception")

        assert provider.find_where(Person) == []

    def test_context_manager_with_exception_triggers_rollback(self, provider):
        with patch.object(UnitOfWork, "rollback") as mock_rollback:
            try:
                with UnitOfWork():
                    raise RuntimeError("Test exception")
            except RuntimeError:
                pass  # Expected exception

            mock_rollback.assert_called_once()

    def test_one_session_per_provider(self, provider):
        with UnitOfWork() as uow:
            assert uow.get_session(provider) is uow.get_session(provider)

    def test_rollback_inside_block_ends_the_transaction(self, provider):
        with UnitOfWork() as uow:
            provider.save(Person(first_name="John"))
            uow.rollback()

        assert uow.in_progress is False
        assert provider.find_where(Person) == []


class TestCommitFailures:
    def test_commit_failure_raises_transaction_error(self, provider):
        with patch.object(
            MemorySession, "commit", side_effect=PersistenceError("disk full")
        ):
            with pytest.raises(TransactionError) as exc:
                with UnitOfWork():
                    provider.save(Person(first_name="John"))

        assert exc.value.extra_info == {
            "original_exception": "PersistenceError",
            "original_message": "disk full",
            "sessions": ["default"],
            "committed": [],
        }
        assert provider.find_where(Person) == []

    def test_uow_is_reset_after_a_failed_commit(self, provider):
        uow = UnitOfWork()

        with patch.object(
            MemorySession, "commit", side_effect=PersistenceError("disk full")
        ):
            uow.start()
            provider.save(Person(first_name="John"))
            with pytest.raises(TransactionError):
                uow.commit()

        assert uow.in_progress is False
        assert not current_uow
