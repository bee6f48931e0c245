"""Transaction boundary for slot-affecting writes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from teamforge.errors import TransactionAbortedError

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Commit failures the caller may retry as a whole
RETRYABLE_COMMIT_ERRORS = (
    gcp_exceptions.Aborted,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.ServiceUnavailable,
)


def _is_store_abort(error: BaseException) -> bool:
    """Whether ``error`` is a commit failure the caller may retry.

    With ``max_attempts=1`` the SDK re-raises a commit ``Aborted`` as a
    ``ValueError`` chained to it, so the cause is checked too.
    """
    if isinstance(error, RETRYABLE_COMMIT_ERRORS):
        return True
    return isinstance(error, ValueError) and isinstance(
        error.__cause__, RETRYABLE_COMMIT_ERRORS
    )


def run_in_transaction(
    db: Client, func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run ``func(transaction, *args, **kwargs)`` as a single Firestore transaction.

    The transaction is attempted once. Business-rule errors raised by ``func``
    roll the transaction back and propagate unchanged; store-level aborts are
    reported as :class:`TransactionAbortedError`.
    """
    transactional = firestore.transactional(func)
    try:
        return transactional(db.transaction(max_attempts=1), *args, **kwargs)
    except (ValueError, *RETRYABLE_COMMIT_ERRORS) as e:
        if not _is_store_abort(e):
            raise
        logger.warning("Transaction %s aborted: %s", func.__name__, e)
        raise TransactionAbortedError() from e
