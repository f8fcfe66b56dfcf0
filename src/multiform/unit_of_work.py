"""Transactions spanning every write of an aggregate save"""

import logging

from multiform.exceptions import InvalidOperationError, TransactionError
from multiform.utils.globals import _uow_context_stack

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Transaction scope spanning every provider touched inside it.

    While a Unit of Work is in progress, providers run their reads and writes
    in the session it holds for them, one per provider name. Nothing becomes
    visible to other readers until `commit()`::

        with UnitOfWork():
            provider.save(product, validate=False)
            provider.save(parcel, validate=False)

    Leaving the block with an exception rolls back. `rollback()` may also be
    called inside the block, which ends the transaction there.
    """

    def __init__(self):
        self._in_progress = False
        self._sessions = {}

    def __repr__(self):
        return f"<UnitOfWork: {'in progress' if self._in_progress else 'idle'}>"

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._in_progress:
            return False

        if exc_type is not None:
            self.rollback()
            return False

        self.commit()
        return False

    def _ensure_in_progress(self):
        if not self._in_progress:
            raise InvalidOperationError("UnitOfWork is not in progress")

    def start(self):
        if self._in_progress:
            raise InvalidOperationError("UnitOfWork is already in progress")

        self._in_progress = True
        _uow_context_stack.push(self)
        logger.debug(f"Started {self}")

    def get_session(self, provider):
        """Return the session of `provider` in this transaction, opening it on first use"""
        if provider.name not in self._sessions:
            self._sessions[provider.name] = provider.get_session()
        return self._sessions[provider.name]

    def commit(self):
        """Commit every session, or roll back the ones not yet committed.

        Raises `TransactionError` when a session fails to commit. Sessions
        committed before the failure stay committed.
        """
        self._ensure_in_progress()

        # Work done from here on is not part of this transaction
        _uow_context_stack.pop()

        committed = []
        try:
            for provider_name, session in self._sessions.items():
                session.commit()
                committed.append(provider_name)
        except Exception as exc:
            logger.error(f"Commit failed, rolling back: {exc}")
            for provider_name, session in self._sessions.items():
                if provider_name not in committed:
                    self._rollback_session(provider_name, session)

            extra_info = {
                "original_exception": exc.__class__.__name__,
                "original_message": str(exc),
                "sessions": list(self._sessions),
                "committed": committed,
            }
            self._finish()
            raise TransactionError(
                f"Unit of Work commit failed: {exc}", extra_info=extra_info
            ) from exc

        logger.debug(f"Committed sessions {committed}")
        self._finish()

    def rollback(self):
        self._ensure_in_progress()
        _uow_context_stack.pop()

        for provider_name, session in self._sessions.items():
            self._rollback_session(provider_name, session)

        logger.debug("Transaction rolled back")
        self._finish()

    @staticmethod
    def _rollback_session(provider_name, session):
        try:
            session.rollback()
        except Exception as exc:
            # Keep rolling back the other sessions
            logger.error(f"Rollback failed on `{provider_name}`: {exc}")

    def _finish(self):
        for session in self._sessions.values():
            session.close()

        self._sessions = {}
        self._in_progress = False
