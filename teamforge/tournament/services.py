"""Service layer for tournament business logic."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from teamforge import notifications
from teamforge.constants import (
    DEFAULT_INCOMPLETE_TEAM_GRACE_HOURS,
    MAX_SUGGESTED_NAME_LIMIT,
    SUGGESTED_NAME_LIMIT,
    TEAM_NAME_CANDIDATES,
    TOURNAMENT_DATES_COLLECTION,
    TOURNAMENT_TYPE_TEAM_SIZE,
    TOURNAMENTS_COLLECTION,
)
from teamforge.core.transactions import run_in_transaction
from teamforge.errors import ConflictError, ForbiddenError, ValidationError
from teamforge.teams.roster import RosterIndex, load_teams, player_key
from teamforge.utils import clean_str, creation_order, utcnow

from .ledger import CapacityLedger, SlotRef
from .models import (
    TOURNAMENT_STATUS_TRANSITIONS,
    TakenPlayer,
    TournamentStatus,
    tournament_summary,
)

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

logger = logging.getLogger(__name__)

# Editable tournament details
REQUIRED_TEXT_FIELDS = ("name", "date", "startTime", "registrationDeadline")
OPTIONAL_TEXT_FIELDS = ("description", "prize", "serverIP")


class TournamentService:
    """Handles business logic and data access for tournaments."""

    @staticmethod
    def create_tournament(data: dict[str, Any], db: Client | None = None) -> str:
        """Create a tournament in ``draft`` with zeroed counters."""
        if db is None:
            db = firestore.client()
        tournament_type = data.get("type")
        if tournament_type not in TOURNAMENT_TYPE_TEAM_SIZE:
            raise ValidationError("type must be solo, duo or squad.", field="type")
        max_teams = int(data.get("maxTeams") or 0)
        if max_teams < 1:
            raise ValidationError("maxTeams must be at least 1.", field="maxTeams")

        ref = db.collection(TOURNAMENTS_COLLECTION).document()
        ref.set(
            {
                "name": clean_str(data.get("name")),
                "type": tournament_type,
                "date": clean_str(data.get("date")),
                "startTime": clean_str(data.get("startTime")),
                "registrationDeadline": clean_str(data.get("registrationDeadline")),
                "maxTeams": max_teams,
                "teamSize": TOURNAMENT_TYPE_TEAM_SIZE[tournament_type],
                "registeredTeams": 0,
                "isClosed": False,
                "closedByAdmin": False,
                "status": TournamentStatus.DRAFT.value,
                "description": clean_str(data.get("description")) or None,
                "prize": clean_str(data.get("prize")) or None,
                "serverIP": clean_str(data.get("serverIP")) or None,
                "createdAt": utcnow(),
            }
        )
        logger.info("Tournament %s created", ref.id)
        notifications.emit(notifications.tournaments_changed, ref.id)
        return ref.id

    @staticmethod
    def create_tournament_date(
        date: str, max_teams: int, db: Client | None = None
    ) -> str:
        """Create a legacy date bucket; the date string is its document id."""
        if db is None:
            db = firestore.client()
        date = clean_str(date)
        if not date:
            raise ValidationError("date is required.", field="date")
        ref = db.collection(TOURNAMENT_DATES_COLLECTION).document(date)
        if ref.get().exists:
            raise ConflictError("A tournament date already exists for that day.", identifier=date)
        ref.set(
            {
                "date": date,
                "maxTeams": int(max_teams),
                "registeredTeams": 0,
                "isClosed": False,
                "closedByAdmin": False,
                "createdAt": utcnow(),
            }
        )
        logger.info("Tournament date %s created", date)
        return date

    @staticmethod
    def get_tournament(slot: SlotRef, db: Client | None = None) -> dict[str, Any]:
        """Fetch a tournament or legacy date bucket."""
        if db is None:
            db = firestore.client()
        return CapacityLedger.read(None, db, slot)[1]

    @staticmethod
    def get_summary(tournament_id: str, db: Client | None = None) -> dict[str, Any]:
        """The fields a registration form needs."""
        return tournament_summary(
            TournamentService.get_tournament(SlotRef(tournament_id=tournament_id), db=db)
        )

    @staticmethod
    def _set_status_in_transaction(
        transaction: Transaction, db: Client, slot: SlotRef, target: TournamentStatus
    ) -> TournamentStatus:
        doc_ref, data = CapacityLedger.read(transaction, db, slot)
        current = TournamentStatus(data.get("status", TournamentStatus.DRAFT.value))
        if target not in TOURNAMENT_STATUS_TRANSITIONS[current]:
            raise ForbiddenError(
                f"Cannot change tournament status from {current.value} to {target.value}."
            )
        transaction.update(doc_ref, {"status": target.value})
        return current

    @staticmethod
    def set_tournament_status(
        tournament_id: str,
        status: Any,
        grace_hours: float = DEFAULT_INCOMPLETE_TEAM_GRACE_HOURS,
        db: Client | None = None,
    ) -> dict[str, Any]:
        """Advance the tournament lifecycle.

        Leaving ``registration_open`` disbands every team still short of
        players.
        """
        if db is None:
            db = firestore.client()
        try:
            target = TournamentStatus(status)
        except ValueError:
            raise ValidationError("Unknown tournament status.", field="status") from None

        slot = SlotRef(tournament_id=tournament_id)
        previous = run_in_transaction(
            db, TournamentService._set_status_in_transaction, db, slot, target
        )
        logger.info(
            "Tournament %s status %s -> %s", tournament_id, previous.value, target.value
        )

        disbanded: list[str] = []
        if previous is TournamentStatus.REGISTRATION_OPEN:
            from teamforge.teams.services import TeamService  # noqa: PLC0415

            disbanded = TeamService.reconcile_incomplete_teams(
                slot, grace_hours=grace_hours, force=True, db=db
            )
        notifications.emit(notifications.tournaments_changed, tournament_id)
        return {"status": target.value, "disbandedTeamIds": disbanded}

    @staticmethod
    def _force_close_in_transaction(
        transaction: Transaction, db: Client, slot: SlotRef, closed: bool
    ) -> bool:
        doc_ref, data = CapacityLedger.read(transaction, db, slot)
        return CapacityLedger.set_forced_closed(transaction, doc_ref, data, closed)

    @staticmethod
    def set_forced_closed(
        slot: SlotRef, closed: bool, db: Client | None = None
    ) -> dict[str, Any]:
        """Admin close or reopen of registration for a bucket."""
        if db is None:
            db = firestore.client()
        is_closed = run_in_transaction(
            db, TournamentService._force_close_in_transaction, db, slot, bool(closed)
        )
        notifications.emit(notifications.tournaments_changed, slot.key)
        return {"closedByAdmin": bool(closed), "isClosed": is_closed}

    @staticmethod
    def _clean_updates(data: Any, legacy: bool) -> dict[str, Any]:
        """Validate a partial update body into Firestore fields."""
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")
        for field in ("status", "isClosed", "closedByAdmin", "registeredTeams"):
            if field in data:
                raise ValidationError(
                    f"{field} cannot be edited here; use the status or close actions.",
                    field=field,
                )

        updates: dict[str, Any] = {}
        if "maxTeams" in data:
            try:
                max_teams = int(data["maxTeams"])
            except (TypeError, ValueError):
                max_teams = 0
            if max_teams < 1 or isinstance(data["maxTeams"], bool):
                raise ValidationError("maxTeams must be a positive number.", field="maxTeams")
            updates["maxTeams"] = max_teams
        if legacy:
            if set(data) - {"maxTeams"}:
                raise ValidationError("Only maxTeams can be changed on a tournament date.")
        else:
            for field in REQUIRED_TEXT_FIELDS:
                if field in data:
                    value = clean_str(data[field])
                    if not value:
                        raise ValidationError(f"{field} cannot be empty.", field=field)
                    updates[field] = value
            for field in OPTIONAL_TEXT_FIELDS:
                if field in data:
                    updates[field] = clean_str(data[field]) or None
            if "type" in data:
                tournament_type = data["type"]
                if tournament_type not in TOURNAMENT_TYPE_TEAM_SIZE:
                    raise ValidationError("type must be solo, duo or squad.", field="type")
                updates["type"] = tournament_type
                updates["teamSize"] = TOURNAMENT_TYPE_TEAM_SIZE[tournament_type]
        if not updates:
            raise ValidationError("Provide at least one field to update.")
        return updates

    @staticmethod
    def _update_in_transaction(
        transaction: Transaction, db: Client, slot: SlotRef, updates: dict[str, Any]
    ) -> dict[str, Any]:
        doc_ref, data = CapacityLedger.read(transaction, db, slot)
        registered = int(data.get("registeredTeams", 0))
        if (
            "teamSize" in updates
            and registered > 0
            and updates["teamSize"] != data.get("teamSize")
        ):
            raise ValidationError(
                "Cannot change team size while teams are registered.", field="type"
            )

        fields = dict(updates)
        max_teams = fields.pop("maxTeams", None)
        if max_teams is not None:
            CapacityLedger.resize(transaction, doc_ref, data, max_teams)
        if fields:
            transaction.update(doc_ref, fields)
            data.update(fields)
        return data

    @staticmethod
    def update_tournament(
        tournament_id: str, data: Any, db: Client | None = None
    ) -> dict[str, Any]:
        """Edit a tournament's details and capacity.

        ``maxTeams`` may not drop below ``registeredTeams`` and ``isClosed``
        is recomputed from it; the type (and so ``teamSize``) is frozen once
        any team is registered.
        """
        if db is None:
            db = firestore.client()
        updates = TournamentService._clean_updates(data, legacy=False)
        slot = SlotRef(tournament_id=tournament_id)
        tournament = run_in_transaction(
            db, TournamentService._update_in_transaction, db, slot, updates
        )
        logger.info("Tournament %s updated: %s", tournament_id, sorted(updates))
        notifications.emit(notifications.tournaments_changed, tournament_id)
        return tournament

    @staticmethod
    def update_tournament_date(
        date: str, data: Any, db: Client | None = None
    ) -> dict[str, Any]:
        """Change the capacity of a legacy date bucket."""
        if db is None:
            db = firestore.client()
        updates = TournamentService._clean_updates(data, legacy=True)
        slot = SlotRef(tournament_date=date)
        bucket = run_in_transaction(
            db, TournamentService._update_in_transaction, db, slot, updates
        )
        logger.info("Tournament date %s resized to %s", date, updates["maxTeams"])
        notifications.emit(notifications.tournaments_changed, date)
        return bucket

    @staticmethod
    def _delete_in_transaction(transaction: Transaction, db: Client, slot: SlotRef) -> None:
        doc_ref, data = CapacityLedger.read(transaction, db, slot)
        registered = int(data.get("registeredTeams", 0))
        if registered != 0:
            raise ConflictError(
                f"Cannot delete: {registered} team(s) registered. "
                "Disband or move teams first.",
                identifier=slot.key,
            )
        transaction.delete(doc_ref)

    @staticmethod
    def delete_tournament(tournament_id: str, db: Client | None = None) -> None:
        """Delete a tournament that has no registered teams."""
        if db is None:
            db = firestore.client()
        slot = SlotRef(tournament_id=tournament_id)
        run_in_transaction(db, TournamentService._delete_in_transaction, db, slot)
        logger.info("Tournament %s deleted", tournament_id)
        notifications.emit(notifications.tournaments_changed, tournament_id)

    @staticmethod
    def delete_tournament_date(date: str, db: Client | None = None) -> None:
        """Delete a legacy date bucket that has no registered teams."""
        if db is None:
            db = firestore.client()
        slot = SlotRef(tournament_date=date)
        run_in_transaction(db, TournamentService._delete_in_transaction, db, slot)
        logger.info("Tournament date %s deleted", date)
        notifications.emit(notifications.tournaments_changed, date)

    @staticmethod
    def list_teams(slot: SlotRef, db: Client | None = None) -> list[dict[str, Any]]:
        """Teams billed against a bucket, newest first."""
        if db is None:
            db = firestore.client()
        CapacityLedger.read(None, db, slot)
        teams = load_teams(db, slot)
        return sorted(teams, key=creation_order, reverse=True)

    # ----- registration helpers -----

    @staticmethod
    def check_team_name(
        tournament_id: str, team_name: Any, db: Client | None = None
    ) -> dict[str, Any]:
        """Whether ``team_name`` is still free in a tournament."""
        if db is None:
            db = firestore.client()
        name = clean_str(team_name)
        if not name:
            raise ValidationError("name is required.", field="name")
        slot = SlotRef(tournament_id=tournament_id)
        CapacityLedger.read(None, db, slot)
        taken = RosterIndex.for_slot(db, slot).team_named(name) is not None
        return {"available": not taken}

    @staticmethod
    def suggest_team_names(
        tournament_id: str, limit: Any = SUGGESTED_NAME_LIMIT, db: Client | None = None
    ) -> list[str]:
        """Up to ``limit`` team names nobody in the tournament uses yet."""
        if db is None:
            db = firestore.client()
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            limit = SUGGESTED_NAME_LIMIT
        limit = max(1, min(limit, MAX_SUGGESTED_NAME_LIMIT))

        slot = SlotRef(tournament_id=tournament_id)
        CapacityLedger.read(None, db, slot)
        taken = {
            clean_str(t.get("teamName")).lower() for t in load_teams(db, slot)
        }
        suggestions = [n for n in TEAM_NAME_CANDIDATES if n.lower() not in taken][:limit]
        while len(suggestions) < limit:
            name = f"Team {random.randint(1000, 9999)}"  # noqa: S311
            if name.lower() not in taken and name not in suggestions:
                suggestions.append(name)
        return suggestions

    @staticmethod
    def check_players(
        tournament_id: str,
        players: Any,
        team_name: Any = None,
        captain_id: str | None = None,
        db: Client | None = None,
    ) -> list[TakenPlayer]:
        """Submitted players whose (IGN, Discord) key is already rostered.

        The caller's own team (same captain and name) is not counted, so a
        re-registration does not flag its own players.
        """
        if db is None:
            db = firestore.client()
        if not isinstance(players, list):
            raise ValidationError("players must be an array.", field="players")
        slot = SlotRef(tournament_id=tournament_id)
        CapacityLedger.read(None, db, slot)
        teams = load_teams(db, slot)

        exclude = None
        name = clean_str(team_name)
        if name and captain_id:
            for team in teams:
                if team.get("teamName") == name and team.get("captainId") == captain_id:
                    exclude = team["id"]
                    break
        index = RosterIndex(teams, exclude_team_id=exclude)

        taken: list[TakenPlayer] = []
        for i, raw in enumerate(players):
            if not isinstance(raw, dict):
                continue
            key = player_key(raw)
            if key[0] and key[1] and key in index.keys:
                taken.append(
                    {
                        "index": i,
                        "minecraftIGN": clean_str(raw.get("minecraftIGN")),
                        "discordUsername": clean_str(raw.get("discordUsername")),
                    }
                )
        return taken
