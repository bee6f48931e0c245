"""Service layer for the team lifecycle.

Every operation that changes which teams a bucket holds (register, move,
disband, and leave/remove when they disband) runs as exactly one Firestore
transaction. Inside it, all reads come first, preconditions are re-checked
against what was read, and only then are the team document and the ledger
counters written together.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from firebase_admin import firestore

from teamforge import notifications
from teamforge.constants import (
    ADMIN_ROLES,
    DEFAULT_INCOMPLETE_TEAM_GRACE_HOURS,
    LEGACY_TEAM_SIZE,
    POST_CREATION_ROSTER_SIZES,
    ROLE_SUPER_ADMIN,
    TEAMS_COLLECTION,
    VALID_TEAM_SIZES,
)
from teamforge.core.transactions import run_in_transaction
from teamforge.errors import (
    CapacityExceededError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from teamforge.tournament.ledger import CapacityLedger, SlotRef, team_size_of
from teamforge.tournament.models import TournamentStatus
from teamforge.utils import clean_str, creation_order, snapshot_to_dict, utcnow

from .models import (
    TEAM_STATUS_TRANSITIONS,
    Player,
    TeamStatus,
    member_ids,
    reassign_reward_receiver,
)
from .roster import RosterIndex, load_teams, normalize_players

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

logger = logging.getLogger(__name__)


def ensure_reward_receiver(reward_receiver_ign: str, players: list[Player]) -> None:
    """The reward receiver must be one of the roster's IGNs."""
    igns = [clean_str(p.get("minecraftIGN")) for p in players]
    if clean_str(reward_receiver_ign) not in igns:
        raise ValidationError(
            "rewardReceiverIGN must be one of the players' Minecraft IGN.",
            field="rewardReceiverIGN",
        )


def must_disband(remaining: int, team_size: int) -> bool:
    """Whether a roster of ``remaining`` players is no longer a valid team."""
    if remaining == 0 or remaining > team_size:
        return True
    if team_size == 2 and remaining == 1:
        return True
    return remaining not in POST_CREATION_ROSTER_SIZES


@dataclass
class RegistrationSubmission:
    """A team registration request, validated before the store is touched."""

    team_name: str
    slot: SlotRef
    players: list[Player]
    reward_receiver_ign: str
    captain_id: Optional[str] = None

    @classmethod
    def from_json(
        cls, body: Any, captain_id: str | None = None, slot: SlotRef | None = None
    ) -> RegistrationSubmission:
        """Parse a JSON request body."""
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object.")
        team_name = clean_str(body.get("teamName"))
        if not team_name:
            raise ValidationError(
                "teamName is required and must be a non-empty string.",
                field="teamName",
            )
        players = normalize_players(body.get("players"))
        reward = clean_str(body.get("rewardReceiverIGN"))
        if not reward:
            raise ValidationError(
                "rewardReceiverIGN is required and must be a non-empty string.",
                field="rewardReceiverIGN",
            )
        if slot is None:
            slot = SlotRef.parse(body.get("tournamentId"), body.get("tournamentDate"))
        submission = cls(team_name, slot, players, reward, captain_id)
        submission.validate()
        return submission

    def validate(self) -> None:
        """Checks that need no store access."""
        ensure_reward_receiver(self.reward_receiver_ign, self.players)
        if self.slot.is_legacy:
            if len(self.players) != LEGACY_TEAM_SIZE:
                raise ValidationError(
                    "players must contain exactly 4 entries for a legacy tournament date.",
                    field="players",
                )
        elif len(self.players) not in VALID_TEAM_SIZES:
            raise ValidationError(
                "players must contain 1 (solo), 2 (duo), or 4 (squad) entries.",
                field="players",
            )


class TeamService:
    """Team lifecycle controller."""

    # ----- shared guards and staging helpers -----

    @staticmethod
    def ensure_registration_open(slot: SlotRef, slot_data: dict[str, Any]) -> None:
        """Tournaments only accept new rosters while registration is open."""
        if slot.is_legacy:
            return
        if slot_data.get("status") != TournamentStatus.REGISTRATION_OPEN.value:
            raise CapacityExceededError("Registration is not open for this tournament.")

    @staticmethod
    def _ensure_roster_changes_allowed(
        slot_data: dict[str, Any], action: str
    ) -> None:
        if slot_data.get("status") != TournamentStatus.REGISTRATION_OPEN.value:
            raise ForbiddenError(f"Cannot {action} after registration has closed.")

    @staticmethod
    def ensure_accounts_free(index: RosterIndex, user_ids: list[str]) -> None:
        """No linked account may be on two teams of one tournament."""
        clash = index.rostered(user_ids)
        if clash:
            raise ConflictError(
                "A player on this roster is already on a team for this tournament. "
                "Each player can only be on one team per tournament.",
                identifier=clash[0],
            )

    @staticmethod
    def stage_new_team(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        slot: SlotRef,
        slot_doc: DocumentReference,
        slot_data: dict[str, Any],
        team_name: str,
        players: list[Player],
        reward_receiver_ign: str,
        captain_id: str | None,
    ) -> DocumentReference:
        """Queue the team document and its slot reservation on ``transaction``."""
        CapacityLedger.reserve_slot(transaction, slot_doc, slot_data)
        now = utcnow()
        team_ref = db.collection(TEAMS_COLLECTION).document()
        transaction.set(
            team_ref,
            {
                "teamName": team_name,
                **slot.team_fields(),
                "captainId": captain_id,
                "players": players,
                "memberIds": member_ids(captain_id, players),
                "rewardReceiverIGN": reward_receiver_ign,
                "status": TeamStatus.PENDING.value,
                "createdAt": now,
                "incompleteSince": (
                    None if len(players) >= team_size_of(slot, slot_data) else now
                ),
            },
        )
        return team_ref

    @staticmethod
    def stage_disband(
        transaction: Transaction,
        team_ref: DocumentReference,
        slot_doc: DocumentReference | None,
        slot_data: dict[str, Any] | None,
    ) -> None:
        """Queue the team deletion and its slot release on ``transaction``."""
        transaction.delete(team_ref)
        if slot_doc is not None and slot_data is not None:
            CapacityLedger.release_slot(transaction, slot_doc, slot_data)

    @staticmethod
    def _read_team(
        transaction: Transaction | None, db: Client, team_id: str
    ) -> tuple[DocumentReference, dict[str, Any]]:
        team_ref = db.collection(TEAMS_COLLECTION).document(team_id)
        team = snapshot_to_dict(team_ref.get(transaction=transaction))
        if team is None:
            raise NotFoundError("Team not found.")
        return team_ref, team

    @staticmethod
    def _read_slot_or_none(
        transaction: Transaction | None, db: Client, slot: SlotRef
    ) -> tuple[DocumentReference | None, dict[str, Any] | None]:
        try:
            return CapacityLedger.read(transaction, db, slot)
        except NotFoundError:
            logger.warning("Team references missing bucket %s", slot.key)
            return None, None

    # ----- register -----

    @staticmethod
    def _register_in_transaction(
        transaction: Transaction,
        db: Client,
        submission: RegistrationSubmission,
        require_open: bool,
    ) -> tuple[str, bool]:
        slot = submission.slot
        slot_doc, slot_data = CapacityLedger.read(transaction, db, slot)
        index = RosterIndex(load_teams(db, slot, transaction))

        if require_open:
            TeamService.ensure_registration_open(slot, slot_data)
        size = team_size_of(slot, slot_data)
        if len(submission.players) != size:
            raise ValidationError(
                f"This tournament requires exactly {size} player(s). "
                f"You provided {len(submission.players)}.",
                field="players",
            )

        players = submission.players
        captain_id = submission.captain_id
        existing = index.team_named(submission.team_name)
        if existing is not None:
            if not captain_id or existing.get("captainId") != captain_id:
                raise ConflictError(
                    f"Team name already registered for {slot.label}.",
                    identifier=submission.team_name,
                )
            # Same captain re-registering: update in place, own players allowed.
            others = RosterIndex(index.teams, exclude_team_id=existing["id"])
            others.ensure_players_free(players, slot.label)
            TeamService.ensure_accounts_free(others, member_ids(captain_id, players))
            transaction.update(
                db.collection(TEAMS_COLLECTION).document(existing["id"]),
                {
                    "players": players,
                    "memberIds": member_ids(captain_id, players),
                    "rewardReceiverIGN": submission.reward_receiver_ign,
                    "incompleteSince": None,
                },
            )
            return existing["id"], False

        if captain_id and index.is_rostered(captain_id):
            raise ConflictError(
                "You are already on a team for this tournament. "
                "Each player can only be on one team per tournament.",
                identifier=captain_id,
            )
        index.ensure_players_free(players, slot.label)
        TeamService.ensure_accounts_free(index, member_ids(None, players))
        CapacityLedger.ensure_free_slot(slot_data, slot)

        team_ref = TeamService.stage_new_team(
            transaction,
            db,
            slot,
            slot_doc,
            slot_data,
            submission.team_name,
            players,
            submission.reward_receiver_ign,
            captain_id,
        )
        return team_ref.id, True

    @staticmethod
    def register_team(
        submission: RegistrationSubmission,
        require_open: bool = True,
        db: Client | None = None,
    ) -> dict[str, Any]:
        """Create a team and reserve its slot, or update the captain's own team.

        ``require_open`` is cleared for admin-added teams, which skip the
        tournament status gate but not capacity, name or roster checks.
        """
        if db is None:
            db = firestore.client()

        # Cheap pre-check; everything is re-validated inside the transaction.
        _, slot_data = CapacityLedger.read(None, db, submission.slot)
        if require_open:
            TeamService.ensure_registration_open(submission.slot, slot_data)

        team_id, created = run_in_transaction(
            db, TeamService._register_in_transaction, db, submission, require_open
        )
        slot_key = submission.slot.key
        if created:
            logger.info("Team %s registered for %s", team_id, slot_key)
            notifications.emit(
                notifications.team_created,
                slot_key,
                team_id=team_id,
                team_name=submission.team_name,
            )
            notifications.tournament_changed(slot_key)
        else:
            logger.info("Team %s re-registered by its captain", team_id)
            notifications.emit(notifications.roster_changed, slot_key, team_id=team_id)
        return {
            "teamId": team_id,
            "created": created,
            "message": (
                "Team registered successfully" if created else "Team updated successfully"
            ),
        }

    # ----- move -----

    @staticmethod
    def _move_in_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        team_id: str,
        destination: SlotRef,
        status: TeamStatus | None,
        actor_role: str,
    ) -> SlotRef:
        team_ref, team = TeamService._read_team(transaction, db, team_id)
        source = SlotRef.from_team(team)
        if source == destination:
            raise ConflictError("Team is already in the target tournament.")
        source_doc, source_data = TeamService._read_slot_or_none(transaction, db, source)
        dest_doc, dest_data = CapacityLedger.read(transaction, db, destination)
        index = RosterIndex(load_teams(db, destination, transaction), exclude_team_id=team_id)

        CapacityLedger.ensure_free_slot(dest_data, destination)
        players = team.get("players", [])
        size = team_size_of(destination, dest_data)
        if len(players) != size:
            raise ValidationError(
                f"The target tournament requires exactly {size} player(s); "
                f"this team has {len(players)}.",
                field="players",
            )
        if index.team_named(team.get("teamName", "")) is not None:
            raise ConflictError(
                "Another team with this name is already registered for the target "
                + ("date." if destination.is_legacy else "tournament."),
                identifier=team.get("teamName"),
            )
        where = "the target date" if destination.is_legacy else "the target tournament"
        index.ensure_players_free(players, where)
        TeamService.ensure_accounts_free(index, team.get("memberIds", []))

        updates: dict[str, Any] = dict(destination.team_fields())
        if status is not None:
            TeamService._check_status_transition(
                TeamStatus(team.get("status", TeamStatus.PENDING.value)), status, actor_role
            )
            updates["status"] = status.value

        if source_doc is not None and source_data is not None:
            CapacityLedger.transfer_slot(
                transaction, source_doc, source_data, dest_doc, dest_data
            )
        else:
            CapacityLedger.reserve_slot(transaction, dest_doc, dest_data)
        transaction.update(team_ref, updates)
        return source

    @staticmethod
    def move_team(
        team_id: str,
        destination: SlotRef,
        status: str | None = None,
        actor_role: str = ROLE_SUPER_ADMIN,
        db: Client | None = None,
    ) -> dict[str, Any]:
        """Move a team to another tournament (or legacy date) atomically."""
        if db is None:
            db = firestore.client()
        target_status = TeamService._parse_status(status) if status is not None else None

        _, team = TeamService._read_team(None, db, team_id)
        source = SlotRef.from_team(team)
        if source == destination:
            if target_status is not None:
                return TeamService.set_status(team_id, target_status.value, actor_role, db=db)
            return team
        if source.is_legacy != destination.is_legacy:
            raise ValidationError(
                "Teams can only move between tournaments or between legacy dates."
            )
        _, dest_data = CapacityLedger.read(None, db, destination)
        CapacityLedger.ensure_free_slot(dest_data, destination)

        run_in_transaction(
            db,
            TeamService._move_in_transaction,
            db,
            team_id,
            destination,
            target_status,
            actor_role,
        )
        logger.info("Team %s moved from %s to %s", team_id, source.key, destination.key)
        notifications.emit(
            notifications.team_moved,
            team_id,
            source=source.key,
            destination=destination.key,
        )
        notifications.tournament_changed(source.key)
        notifications.tournament_changed(destination.key)
        _, moved = TeamService._read_team(None, db, team_id)
        return moved

    # ----- disband -----

    @staticmethod
    def _disband_in_transaction(
        transaction: Transaction, db: Client, team_id: str
    ) -> SlotRef:
        team_ref, team = TeamService._read_team(transaction, db, team_id)
        slot = SlotRef.from_team(team)
        slot_doc, slot_data = TeamService._read_slot_or_none(transaction, db, slot)
        TeamService.stage_disband(transaction, team_ref, slot_doc, slot_data)
        return slot

    @staticmethod
    def disband_team(team_id: str, db: Client | None = None) -> dict[str, Any]:
        """Delete a team and release its slot in one transaction."""
        if db is None:
            db = firestore.client()
        slot = run_in_transaction(db, TeamService._disband_in_transaction, db, team_id)
        logger.info("Team %s disbanded from %s", team_id, slot.key)
        notifications.tournament_changed(slot.key)
        return {"success": True, "message": "Team disbanded"}

    # ----- leave / remove player -----

    @staticmethod
    def _stage_roster_shrink(  # noqa: PLR0913
        transaction: Transaction,
        team_ref: DocumentReference,
        team: dict[str, Any],
        remaining: list[Player],
        team_size: int,
        slot_doc: DocumentReference,
        slot_data: dict[str, Any],
    ) -> bool:
        """Queue the smaller roster, or the disband it forces. True if disbanded."""
        if must_disband(len(remaining), team_size):
            TeamService.stage_disband(transaction, team_ref, slot_doc, slot_data)
            return True

        updates: dict[str, Any] = {
            "players": remaining,
            "memberIds": member_ids(team.get("captainId"), remaining),
            "rewardReceiverIGN": reassign_reward_receiver(
                team.get("rewardReceiverIGN", ""), remaining
            ),
        }
        if len(remaining) < team_size and not team.get("incompleteSince"):
            updates["incompleteSince"] = utcnow()
        transaction.update(team_ref, updates)
        return False

    @staticmethod
    def _leave_in_transaction(
        transaction: Transaction, db: Client, team_id: str, user_id: str
    ) -> tuple[SlotRef, str]:
        team_ref, team = TeamService._read_team(transaction, db, team_id)
        is_captain = team.get("captainId") == user_id
        is_player = any(p.get("userId") == user_id for p in team.get("players", []))
        if not is_captain and not is_player:
            raise ForbiddenError("You are not on this team.")

        slot = SlotRef.from_team(team)
        slot_doc, slot_data = CapacityLedger.read(transaction, db, slot)
        TeamService._ensure_roster_changes_allowed(slot_data, "leave")
        size = team_size_of(slot, slot_data)

        if size == 1:
            TeamService.stage_disband(transaction, team_ref, slot_doc, slot_data)
            return slot, "Registration withdrawn."
        if is_captain:
            raise ForbiddenError(
                "Captain cannot leave. Transfer captaincy first, or ask an admin "
                "to disband the team."
            )

        remaining = [p for p in team.get("players", []) if p.get("userId") != user_id]
        disbanded = TeamService._stage_roster_shrink(
            transaction, team_ref, team, remaining, size, slot_doc, slot_data
        )
        if disbanded:
            return slot, "You have left the team. The team has been disbanded."
        return slot, "You have left the team."

    @staticmethod
    def leave_team(team_id: str, user_id: str, db: Client | None = None) -> dict[str, Any]:
        """Remove the caller from a team, disbanding it if the roster breaks."""
        if db is None:
            db = firestore.client()
        slot, message = run_in_transaction(
            db, TeamService._leave_in_transaction, db, team_id, user_id
        )
        logger.info("User %s left team %s", user_id, team_id)
        notifications.emit(notifications.roster_changed, slot.key, team_id=team_id)
        notifications.tournament_changed(slot.key)
        return {"success": True, "message": message}

    @staticmethod
    def _remove_player_in_transaction(
        transaction: Transaction,
        db: Client,
        team_id: str,
        captain_id: str,
        player_id: str,
    ) -> tuple[SlotRef, str]:
        team_ref, team = TeamService._read_team(transaction, db, team_id)
        if team.get("captainId") != captain_id:
            raise ForbiddenError("Only the captain can remove a player.")

        slot = SlotRef.from_team(team)
        slot_doc, slot_data = CapacityLedger.read(transaction, db, slot)
        TeamService._ensure_roster_changes_allowed(slot_data, "remove players")

        players = team.get("players", [])
        remaining = [p for p in players if p.get("userId") != player_id]
        if len(remaining) == len(players):
            raise NotFoundError("Player not found on this team.")

        disbanded = TeamService._stage_roster_shrink(
            transaction,
            team_ref,
            team,
            remaining,
            team_size_of(slot, slot_data),
            slot_doc,
            slot_data,
        )
        if disbanded:
            return slot, "Player removed. Team disbanded (not enough players)."
        return slot, "Player removed. Send a new invite to replace them."

    @staticmethod
    def remove_player(
        team_id: str, captain_id: str, player_id: str, db: Client | None = None
    ) -> dict[str, Any]:
        """Captain removes one teammate."""
        if captain_id == player_id:
            raise ValidationError(
                "Use Leave team to withdraw; captain cannot be removed as player."
            )
        if db is None:
            db = firestore.client()
        slot, message = run_in_transaction(
            db,
            TeamService._remove_player_in_transaction,
            db,
            team_id,
            captain_id,
            player_id,
        )
        notifications.emit(notifications.roster_changed, slot.key, team_id=team_id)
        notifications.tournament_changed(slot.key)
        return {"success": True, "message": message}

    # ----- captaincy -----

    @staticmethod
    def _transfer_in_transaction(
        transaction: Transaction,
        db: Client,
        team_id: str,
        user_id: str,
        new_captain_id: str,
    ) -> None:
        team_ref, team = TeamService._read_team(transaction, db, team_id)
        if team.get("captainId") != user_id:
            raise ForbiddenError("Only the captain can transfer captaincy.")
        players = team.get("players", [])
        if not any(p.get("userId") == new_captain_id for p in players):
            raise ValidationError(
                "The new captain must be a player on this team.", field="newCaptainUserId"
            )
        _, slot_data = CapacityLedger.read(transaction, db, SlotRef.from_team(team))
        TeamService._ensure_roster_changes_allowed(slot_data, "transfer captaincy")
        transaction.update(
            team_ref,
            {"captainId": new_captain_id, "memberIds": member_ids(new_captain_id, players)},
        )

    @staticmethod
    def transfer_captaincy(
        team_id: str, user_id: str, new_captain_id: str, db: Client | None = None
    ) -> dict[str, Any]:
        """Hand the captain role to a rostered teammate."""
        if not new_captain_id:
            raise ValidationError(
                "Valid newCaptainUserId is required.", field="newCaptainUserId"
            )
        if new_captain_id == user_id:
            raise ValidationError("You are already the captain.")
        if db is None:
            db = firestore.client()
        run_in_transaction(
            db, TeamService._transfer_in_transaction, db, team_id, user_id, new_captain_id
        )
        logger.info("Captaincy of team %s transferred to %s", team_id, new_captain_id)
        return {"success": True, "message": "Captaincy transferred."}

    # ----- review status -----

    @staticmethod
    def _parse_status(status: Any) -> TeamStatus:
        try:
            return TeamStatus(status)
        except ValueError:
            raise ValidationError(
                "status must be exactly 'pending', 'approved' or 'rejected'.",
                field="status",
            ) from None

    @staticmethod
    def _check_status_transition(
        current: TeamStatus, target: TeamStatus, actor_role: str
    ) -> None:
        if actor_role not in ADMIN_ROLES:
            raise ForbiddenError("Only admins can review teams.")
        if target not in TEAM_STATUS_TRANSITIONS[current]:
            raise ForbiddenError(
                f"Cannot change team status from {current.value} to {target.value}."
            )
        if target is TeamStatus.PENDING and actor_role != ROLE_SUPER_ADMIN:
            raise ForbiddenError("Only a super admin can return a team to pending.")

    @staticmethod
    def _set_status_in_transaction(
        transaction: Transaction,
        db: Client,
        team_id: str,
        target: TeamStatus,
        actor_role: str,
    ) -> None:
        team_ref, team = TeamService._read_team(transaction, db, team_id)
        current = TeamStatus(team.get("status", TeamStatus.PENDING.value))
        TeamService._check_status_transition(current, target, actor_role)
        transaction.update(team_ref, {"status": target.value})

    @staticmethod
    def set_status(
        team_id: str, status: str, actor_role: str, db: Client | None = None
    ) -> dict[str, Any]:
        """Approve, reject, or (super admin) return a team to pending."""
        if db is None:
            db = firestore.client()
        target = TeamService._parse_status(status)
        run_in_transaction(
            db, TeamService._set_status_in_transaction, db, team_id, target, actor_role
        )
        _, team = TeamService._read_team(None, db, team_id)
        notifications.emit(
            notifications.teams_changed, SlotRef.from_team(team).key, team_id=team_id
        )
        return team

    # ----- admin roster edit -----

    @staticmethod
    def _update_roster_in_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        team_id: str,
        players: list[Player] | None,
        reward_receiver_ign: str | None,
        actor_role: str,
    ) -> SlotRef:
        team_ref, team = TeamService._read_team(transaction, db, team_id)
        slot = SlotRef.from_team(team)
        _, slot_data = CapacityLedger.read(transaction, db, slot)
        index = RosterIndex(load_teams(db, slot, transaction), exclude_team_id=team_id)

        if team.get("status") != TeamStatus.PENDING.value and actor_role != ROLE_SUPER_ADMIN:
            raise ForbiddenError(
                "Can only edit team members before approval. Approve or reject "
                "first, or ask a super admin."
            )
        roster = players if players is not None else team.get("players", [])
        reward = reward_receiver_ign or team.get("rewardReceiverIGN", "")
        size = team_size_of(slot, slot_data)
        if len(roster) != size:
            raise ValidationError(
                f"Player count must be exactly {size} for this tournament.",
                field="players",
            )
        ensure_reward_receiver(reward, roster)
        index.ensure_players_free(roster, slot.label)
        ids = member_ids(team.get("captainId"), roster)
        TeamService.ensure_accounts_free(index, ids)

        transaction.update(
            team_ref,
            {
                "players": roster,
                "memberIds": ids,
                "rewardReceiverIGN": reward,
                "incompleteSince": None,
            },
        )
        return slot

    @staticmethod
    def update_roster(
        team_id: str,
        players: Any = None,
        reward_receiver_ign: Any = None,
        actor_role: str = ROLE_SUPER_ADMIN,
        db: Client | None = None,
    ) -> dict[str, Any]:
        """Admin edit of a team's players and/or reward receiver."""
        if players is None and reward_receiver_ign is None:
            raise ValidationError("Provide players and/or rewardReceiverIGN.")
        roster = normalize_players(players) if players is not None else None
        reward = None
        if reward_receiver_ign is not None:
            reward = clean_str(reward_receiver_ign)
            if not reward:
                raise ValidationError(
                    "rewardReceiverIGN must be a non-empty string.",
                    field="rewardReceiverIGN",
                )
        if db is None:
            db = firestore.client()
        slot = run_in_transaction(
            db,
            TeamService._update_roster_in_transaction,
            db,
            team_id,
            roster,
            reward,
            actor_role,
        )
        notifications.emit(notifications.roster_changed, slot.key, team_id=team_id)
        _, team = TeamService._read_team(None, db, team_id)
        return team

    # ----- reads -----

    @staticmethod
    def get_team(team_id: str, db: Client | None = None) -> dict[str, Any]:
        """Fetch a team by id."""
        if db is None:
            db = firestore.client()
        return TeamService._read_team(None, db, team_id)[1]

    @staticmethod
    def get_team_for_member(
        team_id: str, user_id: str, db: Client | None = None
    ) -> dict[str, Any]:
        """Fetch a team the caller captains or plays on."""
        team = TeamService.get_team(team_id, db=db)
        if user_id not in team.get("memberIds", []):
            raise NotFoundError("Team not found.")
        return team

    @staticmethod
    def list_for_member(user_id: str, db: Client | None = None) -> list[dict[str, Any]]:
        """Teams the user captains or plays on, newest first."""
        if db is None:
            db = firestore.client()
        query = db.collection(TEAMS_COLLECTION).where(
            filter=firestore.FieldFilter("memberIds", "array_contains", user_id)
        )
        teams = [snapshot_to_dict(doc) for doc in query.stream()]
        return sorted(teams, key=creation_order, reverse=True)

    # ----- reconciliation of incomplete rosters -----

    @staticmethod
    def reconcile_incomplete_teams(
        slot: SlotRef,
        grace_hours: float = DEFAULT_INCOMPLETE_TEAM_GRACE_HOURS,
        force: bool = False,
        now: datetime.datetime | None = None,
        db: Client | None = None,
    ) -> list[str]:
        """Disband teams left short of ``teamSize`` past the grace period.

        With ``force`` every short team is disbanded, which is what happens
        once registration stops being open.
        """
        if db is None:
            db = firestore.client()
        cutoff = (now or utcnow()) - datetime.timedelta(hours=grace_hours)
        _, slot_data = CapacityLedger.read(None, db, slot)
        size = team_size_of(slot, slot_data)

        disbanded = []
        for team in load_teams(db, slot):
            if len(team.get("players", [])) >= size:
                continue
            since = team.get("incompleteSince")
            if not force and since is not None and since > cutoff:
                continue
            try:
                TeamService.disband_team(team["id"], db=db)
            except NotFoundError:
                logger.info("Team %s already gone during reconciliation", team["id"])
                continue
            disbanded.append(team["id"])

        if disbanded:
            logger.info(
                "Disbanded %d incomplete team(s) in %s", len(disbanded), slot.key
            )
        return disbanded
