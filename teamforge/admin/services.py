"""Bulk admin operations over many teams."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Any, Callable

from teamforge.constants import DEFAULT_BULK_MAX_WORKERS, ROLE_SUPER_ADMIN
from teamforge.core.types import BulkResult
from teamforge.errors import AppError, ValidationError
from teamforge.teams.services import TeamService
from teamforge.utils import clean_str

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)


class AdminService:
    """Fan single-team operations out over a worker pool.

    Each team gets its own transaction. The batch is not atomic: the result
    counts successes and failures and maps each failed team id to its error.
    """

    @staticmethod
    def _clean_ids(team_ids: Any) -> list[str]:
        if not isinstance(team_ids, list) or not team_ids:
            raise ValidationError("teamIds must be a non-empty array.", field="teamIds")
        ids = [clean_str(tid) for tid in team_ids]
        if not all(ids):
            raise ValidationError("Each team id must be a non-empty string.", field="teamIds")
        return list(dict.fromkeys(ids))

    @staticmethod
    def _run_bulk(
        team_ids: list[str], operation: Callable[[str], Any], max_workers: int
    ) -> BulkResult:
        result: BulkResult = {"succeeded": 0, "failed": 0, "errors": {}}
        workers = max(1, min(max_workers, len(team_ids)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(operation, tid): tid for tid in team_ids}
            for future in as_completed(futures):
                team_id = futures[future]
                try:
                    future.result()
                except AppError as e:
                    result["failed"] += 1
                    result["errors"][team_id] = e.message
                except Exception:  # noqa: BLE001
                    logger.exception("Bulk operation failed for team %s", team_id)
                    result["failed"] += 1
                    result["errors"][team_id] = "Unexpected error."
                else:
                    result["succeeded"] += 1
        return result

    @staticmethod
    def bulk_set_status(
        team_ids: Any,
        status: str,
        actor_role: str = ROLE_SUPER_ADMIN,
        max_workers: int = DEFAULT_BULK_MAX_WORKERS,
        db: Client | None = None,
    ) -> BulkResult:
        """Approve, reject or reset many teams."""
        ids = AdminService._clean_ids(team_ids)
        result = AdminService._run_bulk(
            ids,
            lambda tid: TeamService.set_status(tid, status, actor_role, db=db),
            max_workers,
        )
        logger.info(
            "Bulk status %s: %d succeeded, %d failed",
            status,
            result["succeeded"],
            result["failed"],
        )
        return result

    @staticmethod
    def bulk_disband(
        team_ids: Any,
        max_workers: int = DEFAULT_BULK_MAX_WORKERS,
        db: Client | None = None,
    ) -> BulkResult:
        """Disband many teams, releasing each slot."""
        ids = AdminService._clean_ids(team_ids)
        result = AdminService._run_bulk(
            ids, lambda tid: TeamService.disband_team(tid, db=db), max_workers
        )
        logger.info(
            "Bulk disband: %d succeeded, %d failed", result["succeeded"], result["failed"]
        )
        return result
