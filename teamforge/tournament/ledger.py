"""Capacity ledger: the slot counters on tournaments and legacy date buckets.

The ledger never writes on its own. Each helper takes the snapshot the caller
already read inside its transaction and queues the counter update on that same
transaction, so a counter only ever moves together with the team document that
justifies it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from firebase_admin import firestore

from teamforge.constants import (
    LEGACY_TEAM_SIZE,
    TEAMS_COLLECTION,
    TOURNAMENT_DATES_COLLECTION,
    TOURNAMENTS_COLLECTION,
)
from teamforge.errors import CapacityExceededError, NotFoundError, ValidationError
from teamforge.utils import clean_str

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.query import Query
    from google.cloud.firestore_v1.transaction import Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotRef:
    """The capacity bucket a team is billed against.

    Exactly one of ``tournament_id`` and ``tournament_date`` is set.
    """

    tournament_id: Optional[str] = None
    tournament_date: Optional[str] = None

    def __post_init__(self) -> None:
        """Enforce the tournament-id XOR legacy-date rule."""
        if bool(self.tournament_id) == bool(self.tournament_date):
            raise ValidationError(
                "Provide either tournamentId or tournamentDate, not both."
                if self.tournament_id
                else "tournamentId or tournamentDate is required."
            )

    @classmethod
    def parse(cls, tournament_id: Any = None, tournament_date: Any = None) -> SlotRef:
        """Build a ref from raw request values."""
        return cls(clean_str(tournament_id) or None, clean_str(tournament_date) or None)

    @classmethod
    def from_team(cls, team: dict[str, Any]) -> SlotRef:
        """Return the bucket a stored team belongs to."""
        return cls(team.get("tournamentId") or None, team.get("tournamentDate") or None)

    @property
    def is_legacy(self) -> bool:
        """Whether this is a legacy date bucket."""
        return self.tournament_date is not None

    @property
    def key(self) -> str:
        """The document id of the bucket."""
        return self.tournament_date if self.is_legacy else self.tournament_id  # type: ignore[return-value]

    @property
    def label(self) -> str:
        """Human wording for error messages."""
        return "this date" if self.is_legacy else "this tournament"

    def document(self, db: Client) -> DocumentReference:
        """Return the Firestore document holding this bucket's counters."""
        collection = (
            TOURNAMENT_DATES_COLLECTION if self.is_legacy else TOURNAMENTS_COLLECTION
        )
        return db.collection(collection).document(self.key)

    def team_fields(self) -> dict[str, Optional[str]]:
        """Fields written on a team document to bill it against this bucket."""
        return {"tournamentId": self.tournament_id, "tournamentDate": self.tournament_date}

    def teams_query(self, db: Client) -> Query:
        """Query every team billed against this bucket."""
        field = "tournamentDate" if self.is_legacy else "tournamentId"
        return db.collection(TEAMS_COLLECTION).where(
            filter=firestore.FieldFilter(field, "==", self.key)
        )


def team_size_of(ref: SlotRef, data: dict[str, Any]) -> int:
    """Roster size a bucket requires."""
    if ref.is_legacy:
        return LEGACY_TEAM_SIZE
    return int(data.get("teamSize") or LEGACY_TEAM_SIZE)


class CapacityLedger:
    """Counter deltas on ``registeredTeams`` / ``maxTeams`` / ``isClosed``."""

    @staticmethod
    def read(
        transaction: Transaction | None, db: Client, ref: SlotRef
    ) -> tuple[DocumentReference, dict[str, Any]]:
        """Read a bucket, inside ``transaction`` when one is given."""
        doc_ref = ref.document(db)
        snapshot = doc_ref.get(transaction=transaction)
        if not snapshot.exists:
            raise NotFoundError(
                "Tournament date not found." if ref.is_legacy else "Tournament not found."
            )
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return doc_ref, data

    @staticmethod
    def has_free_slot(data: dict[str, Any]) -> bool:
        """Whether a bucket can accept one more team right now."""
        if data.get("isClosed"):
            return False
        return int(data.get("registeredTeams", 0)) < int(data.get("maxTeams", 0))

    @staticmethod
    def ensure_free_slot(data: dict[str, Any], ref: SlotRef | None = None) -> None:
        """Raise :class:`CapacityExceededError` unless a slot is free."""
        if CapacityLedger.has_free_slot(data):
            return
        where = ref.label if ref else "this tournament"
        if data.get("closedByAdmin"):
            raise CapacityExceededError(f"Registration is closed for {where}.")
        raise CapacityExceededError(f"No slots remaining for {where}.")

    @staticmethod
    def closed_state(registered: int, data: dict[str, Any]) -> bool:
        """``isClosed`` for a given count: full, or forced closed by an admin."""
        return registered >= int(data.get("maxTeams", 0)) or bool(
            data.get("closedByAdmin")
        )

    @staticmethod
    def reserve_slot(
        transaction: Transaction, doc_ref: DocumentReference, data: dict[str, Any]
    ) -> int:
        """Queue a +1 on the bucket; returns the new count."""
        CapacityLedger.ensure_free_slot(data)
        registered = int(data.get("registeredTeams", 0)) + 1
        transaction.update(
            doc_ref,
            {
                "registeredTeams": registered,
                "isClosed": CapacityLedger.closed_state(registered, data),
            },
        )
        data["registeredTeams"] = registered
        return registered

    @staticmethod
    def release_slot(
        transaction: Transaction, doc_ref: DocumentReference, data: dict[str, Any]
    ) -> int:
        """Queue a -1 on the bucket; reopens it if it was closed only by fullness."""
        current = int(data.get("registeredTeams", 0))
        if current <= 0:
            logger.warning("Slot counter for %s already at zero", doc_ref.id)
        registered = max(0, current - 1)
        transaction.update(
            doc_ref,
            {
                "registeredTeams": registered,
                "isClosed": CapacityLedger.closed_state(registered, data),
            },
        )
        data["registeredTeams"] = registered
        return registered

    @staticmethod
    def transfer_slot(
        transaction: Transaction,
        from_ref: DocumentReference,
        from_data: dict[str, Any],
        to_ref: DocumentReference,
        to_data: dict[str, Any],
    ) -> None:
        """Queue the paired counter moves for a team changing buckets."""
        CapacityLedger.ensure_free_slot(to_data)
        CapacityLedger.release_slot(transaction, from_ref, from_data)
        CapacityLedger.reserve_slot(transaction, to_ref, to_data)

    @staticmethod
    def set_forced_closed(
        transaction: Transaction,
        doc_ref: DocumentReference,
        data: dict[str, Any],
        closed: bool,
    ) -> bool:
        """Queue an admin close/reopen; a full bucket stays closed on reopen."""
        data["closedByAdmin"] = bool(closed)
        is_closed = CapacityLedger.closed_state(int(data.get("registeredTeams", 0)), data)
        transaction.update(doc_ref, {"closedByAdmin": bool(closed), "isClosed": is_closed})
        data["isClosed"] = is_closed
        return is_closed

    @staticmethod
    def resize(
        transaction: Transaction,
        doc_ref: DocumentReference,
        data: dict[str, Any],
        max_teams: int,
    ) -> bool:
        """Queue a new ``maxTeams``; it may not drop below the teams already billed."""
        registered = int(data.get("registeredTeams", 0))
        if max_teams < registered:
            raise ValidationError(
                f"maxTeams cannot be less than current registered teams ({registered}).",
                field="maxTeams",
            )
        data["maxTeams"] = max_teams
        is_closed = CapacityLedger.closed_state(registered, data)
        transaction.update(doc_ref, {"maxTeams": max_teams, "isClosed": is_closed})
        data["isClosed"] = is_closed
        return is_closed
