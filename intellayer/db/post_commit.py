"""Post-commit hooks for side effects that must not join the transaction.

Actions registered here run only after the session's transaction commits
and are dropped if it rolls back. A failing action is logged and never
propagates: the data is already committed and the caller must still get
its result.
"""

import functools
import logging
from collections.abc import Callable

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_ACTIONS_KEY = "_post_commit_actions"
_BOUND_KEY = "_post_commit_bound"


def _sync_session(session: AsyncSession | Session) -> Session:
    if isinstance(session, AsyncSession):
        return session.sync_session
    return session


def _bind_session_events(session: Session) -> None:
    """Bind commit/rollback listeners once per session instance."""
    if session.info.get(_BOUND_KEY):
        return
    session.info[_BOUND_KEY] = True

    @event.listens_for(session, "after_commit")
    def _after_commit(sess: Session) -> None:
        actions = list(sess.info.get(_ACTIONS_KEY) or [])
        sess.info[_ACTIONS_KEY] = []
        for action in actions:
            try:
                action()
            except Exception:
                logger.exception("Post-commit action failed: %r", action)

    @event.listens_for(session, "after_soft_rollback")
    def _after_rollback(sess: Session, previous_transaction) -> None:
        # A released SAVEPOINT does not discard the outer transaction's work.
        if previous_transaction.nested:
            return
        sess.info[_ACTIONS_KEY] = []


def register_after_commit(
    session: AsyncSession | Session,
    func: Callable[..., None],
    *args,
    **kwargs,
) -> None:
    """Run ``func(*args, **kwargs)`` once the current transaction commits."""
    sync = _sync_session(session)
    _bind_session_events(sync)
    sync.info.setdefault(_ACTIONS_KEY, []).append(functools.partial(func, *args, **kwargs))


def pending_actions(session: AsyncSession | Session) -> int:
    """Number of actions waiting for the next commit."""
    return len(_sync_session(session).info.get(_ACTIONS_KEY) or [])
