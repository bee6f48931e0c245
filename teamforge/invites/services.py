"""Invite coordinator: assembles a roster from accepted invites.

A captain invites ``teamSize - 1`` accounts under a team name. When the last
one accepts, the captain plus every accepted invitee becomes a team through
the same staging helpers the direct registration path uses, so the invite
update, the team creation and the slot reservation commit together.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from teamforge import notifications
from teamforge.constants import INVITES_COLLECTION, TEAMS_COLLECTION
from teamforge.core.transactions import run_in_transaction
from teamforge.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from teamforge.teams.models import member_ids
from teamforge.teams.roster import RosterIndex, load_teams, normalize_players
from teamforge.teams.services import TeamService
from teamforge.tournament.ledger import CapacityLedger, SlotRef, team_size_of
from teamforge.user.helpers import load_profiles, player_from_profile, smart_display_name
from teamforge.utils import clean_str, creation_order, snapshot_to_dict, utcnow

from .models import INVITE_STATUS_TRANSITIONS, InviteStatus

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.query import Query
    from google.cloud.firestore_v1.transaction import Transaction

logger = logging.getLogger(__name__)


class InviteService:
    """Send, answer and list team invites."""

    @staticmethod
    def _group_query(
        db: Client, captain_id: str, tournament_id: str, team_name: str
    ) -> Query:
        """Every invite of one (captain, tournament, team name) triple."""
        return (
            db.collection(INVITES_COLLECTION)
            .where(filter=firestore.FieldFilter("captainId", "==", captain_id))
            .where(filter=firestore.FieldFilter("tournamentId", "==", tournament_id))
            .where(filter=firestore.FieldFilter("teamName", "==", team_name))
        )

    @staticmethod
    def _clean_targets(captain_id: str, target_ids: Any) -> list[str]:
        if not isinstance(target_ids, list):
            raise ValidationError("userIds must be an array.", field="userIds")
        targets = [clean_str(uid) for uid in target_ids]
        if not all(targets):
            raise ValidationError("Each invited user id must be a non-empty string.", field="userIds")
        if len(set(targets)) != len(targets):
            raise ValidationError("Invite each player only once.", field="userIds")
        if captain_id in targets:
            raise ForbiddenError("You cannot invite yourself.")
        return targets

    @staticmethod
    def _send_in_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        captain_id: str,
        slot: SlotRef,
        team_name: str,
        targets: list[str],
    ) -> tuple[list[str], bool]:
        # Reads
        _, slot_data = CapacityLedger.read(transaction, db, slot)
        index = RosterIndex(load_teams(db, slot, transaction))
        profiles = load_profiles(db, targets, transaction)
        group = [
            snapshot_to_dict(doc)
            for doc in InviteService._group_query(db, captain_id, slot.key, team_name).stream(
                transaction=transaction
            )
        ]

        # Checks
        TeamService.ensure_registration_open(slot, slot_data)
        size = team_size_of(slot, slot_data)
        if size == 1:
            raise ValidationError(
                "Solo tournaments do not use invites. Register directly instead."
            )

        named = index.team_named(team_name)
        replacing = named is not None and named.get("captainId") == captain_id
        if replacing:
            expected = size - len(named.get("players", []))
            if expected <= 0:
                raise ConflictError("Your team is already complete.", identifier=team_name)
        else:
            if named is not None:
                raise ConflictError(
                    "Team name already registered for this tournament.",
                    identifier=team_name,
                )
            if index.is_rostered(captain_id):
                raise ConflictError(
                    "You are already on a team for this tournament. "
                    "Each player can only be on one team per tournament.",
                    identifier=captain_id,
                )
            expected = size - 1
        if len(targets) != expected:
            raise ValidationError(
                f"Select exactly {expected} player(s) to invite.", field="userIds"
            )

        clash = index.rostered(targets)
        if clash:
            raise ConflictError(
                f"{smart_display_name(profiles.get(clash[0]))} is already on a team "
                "for this tournament.",
                identifier=clash[0],
            )
        rejected = {
            inv.get("toUserId")
            for inv in group
            if inv.get("status") == InviteStatus.REJECTED.value
        }
        for uid in targets:
            if uid in rejected:
                raise ConflictError(
                    f"{smart_display_name(profiles.get(uid))} declined an invite for "
                    "this team name. Choose a different team name to invite them again.",
                    identifier=uid,
                )

        # Writes: the previous pending round is replaced by the new one.
        for inv in group:
            status = inv.get("status")
            if status == InviteStatus.PENDING.value or (
                status == InviteStatus.ACCEPTED.value
                and (not replacing or inv.get("toUserId") in targets)
            ):
                transaction.delete(db.collection(INVITES_COLLECTION).document(inv["id"]))

        now = utcnow()
        invite_ids = []
        for order, uid in enumerate(targets):
            ref = db.collection(INVITES_COLLECTION).document()
            transaction.set(
                ref,
                {
                    "captainId": captain_id,
                    "toUserId": uid,
                    "tournamentId": slot.key,
                    "teamName": team_name,
                    "status": InviteStatus.PENDING.value,
                    "order": order,
                    "createdAt": now,
                },
            )
            invite_ids.append(ref.id)
        return invite_ids, replacing

    @staticmethod
    def send_invites(
        captain_id: str,
        tournament_id: Any,
        team_name: Any,
        target_ids: Any,
        db: Client | None = None,
    ) -> dict[str, Any]:
        """Replace the captain's pending invites for a team name, all or nothing.

        A captain whose team under ``team_name`` is short of players (after
        someone left) may invite exactly the missing number of replacements.
        """
        if db is None:
            db = firestore.client()
        team_name = clean_str(team_name)
        if not team_name:
            raise ValidationError("teamName is required.", field="teamName")
        targets = InviteService._clean_targets(captain_id, target_ids)
        slot = SlotRef.parse(tournament_id, None)

        # Cheap pre-check; everything is re-validated inside the transaction.
        _, slot_data = CapacityLedger.read(None, db, slot)
        TeamService.ensure_registration_open(slot, slot_data)

        invite_ids, replacing = run_in_transaction(
            db,
            InviteService._send_in_transaction,
            db,
            captain_id,
            slot,
            team_name,
            targets,
        )
        logger.info(
            "Captain %s sent %d invite(s) for %s in %s",
            captain_id,
            len(invite_ids),
            team_name,
            slot.key,
        )
        return {
            "success": True,
            "inviteIds": invite_ids,
            "message": (
                "Replacement invite(s) sent." if replacing else "Invites sent."
            ),
        }

    # ----- respond -----

    @staticmethod
    def _read_addressed_invite(
        transaction: Transaction | None, db: Client, invite_id: str, user_id: str
    ) -> dict[str, Any]:
        ref = db.collection(INVITES_COLLECTION).document(invite_id)
        invite = snapshot_to_dict(ref.get(transaction=transaction))
        if invite is None:
            raise NotFoundError("Invite not found.")
        if invite.get("toUserId") != user_id:
            raise ForbiddenError("This invite is not for you.")
        return invite

    @staticmethod
    def _check_transition(invite: dict[str, Any], target: InviteStatus) -> None:
        current = InviteStatus(invite.get("status", InviteStatus.PENDING.value))
        if target not in INVITE_STATUS_TRANSITIONS[current]:
            raise ConflictError(
                f"Invite already {current.value}.", identifier=invite.get("id")
            )

    @staticmethod
    def _reject_in_transaction(
        transaction: Transaction, db: Client, invite_id: str, user_id: str
    ) -> dict[str, Any]:
        invite = InviteService._read_addressed_invite(transaction, db, invite_id, user_id)
        InviteService._check_transition(invite, InviteStatus.REJECTED)
        transaction.update(
            db.collection(INVITES_COLLECTION).document(invite_id),
            {"status": InviteStatus.REJECTED.value, "respondedAt": utcnow()},
        )
        return {"success": True, "status": InviteStatus.REJECTED.value}

    @staticmethod
    def _accept_in_transaction(  # noqa: PLR0912, PLR0915
        transaction: Transaction, db: Client, invite_id: str, user_id: str
    ) -> dict[str, Any]:
        invite = InviteService._read_addressed_invite(transaction, db, invite_id, user_id)
        InviteService._check_transition(invite, InviteStatus.ACCEPTED)
        captain_id = invite.get("captainId")
        team_name = invite.get("teamName", "")
        slot = SlotRef.parse(invite.get("tournamentId"), None)

        # Reads
        slot_doc, slot_data = CapacityLedger.read(transaction, db, slot)
        index = RosterIndex(load_teams(db, slot, transaction))
        group = [
            snapshot_to_dict(doc)
            for doc in InviteService._group_query(db, captain_id, slot.key, team_name).stream(
                transaction=transaction
            )
        ]
        accepted = sorted(
            [
                inv
                for inv in group
                if inv
                and inv["id"] != invite_id
                and inv.get("status") == InviteStatus.ACCEPTED.value
            ]
            + [invite],
            key=creation_order,
        )
        profiles = load_profiles(
            db, [captain_id, *(inv["toUserId"] for inv in accepted)], transaction
        )

        # Checks
        TeamService.ensure_registration_open(slot, slot_data)
        if index.is_rostered(user_id):
            raise ConflictError(
                "You are already on a team for this tournament.", identifier=user_id
            )
        player = player_from_profile(user_id, profiles[user_id])
        size = team_size_of(slot, slot_data)
        invite_ref = db.collection(INVITES_COLLECTION).document(invite_id)
        accept_fields = {"status": InviteStatus.ACCEPTED.value, "respondedAt": utcnow()}

        existing = index.team_named(team_name)
        if existing is not None and existing.get("captainId") == captain_id:
            players = existing.get("players", [])
            if len(players) >= size:
                raise ConflictError("This team is already full.", identifier=team_name)
            index.ensure_players_free([player], slot.label)
            players = [*players, player]
            transaction.update(invite_ref, accept_fields)
            transaction.update(
                db.collection(TEAMS_COLLECTION).document(existing["id"]),
                {
                    "players": players,
                    "memberIds": member_ids(captain_id, players),
                    "incompleteSince": (
                        None if len(players) >= size else existing.get("incompleteSince")
                    ),
                },
            )
            return {"teamId": existing["id"], "joined": True}
        if existing is not None:
            raise ConflictError(
                "Team name already registered for this tournament.", identifier=team_name
            )
        index.ensure_players_free([player], slot.label)

        if len(accepted) < size - 1:
            transaction.update(invite_ref, accept_fields)
            return {"waiting": True}

        # Completion: captain first, then invitees in invite order.
        if index.is_rostered(captain_id):
            raise ConflictError(
                "The captain is already on another team for this tournament.",
                identifier=captain_id,
            )
        captain = player_from_profile(captain_id, profiles[captain_id])
        roster = normalize_players(
            [captain]
            + [
                player_from_profile(inv["toUserId"], profiles[inv["toUserId"]])
                for inv in accepted
            ]
        )
        index.ensure_players_free(roster, slot.label)
        TeamService.ensure_accounts_free(index, member_ids(captain_id, roster))
        CapacityLedger.ensure_free_slot(slot_data, slot)

        transaction.update(invite_ref, accept_fields)
        team_ref = TeamService.stage_new_team(
            transaction,
            db,
            slot,
            slot_doc,
            slot_data,
            team_name,
            roster,
            captain["minecraftIGN"],
            captain_id,
        )
        return {"teamId": team_ref.id, "teamCreated": True}

    @staticmethod
    def respond(
        invite_id: str, user_id: str, action: Any, db: Client | None = None
    ) -> dict[str, Any]:
        """Accept or reject one invite addressed to ``user_id``."""
        if action not in ("accept", "reject"):
            raise ValidationError("action must be 'accept' or 'reject'.", field="action")
        if db is None:
            db = firestore.client()

        # Cheap pre-check outside the transaction.
        invite = InviteService._read_addressed_invite(None, db, invite_id, user_id)
        InviteService._check_transition(
            invite,
            InviteStatus.ACCEPTED if action == "accept" else InviteStatus.REJECTED,
        )

        if action == "reject":
            result = run_in_transaction(
                db, InviteService._reject_in_transaction, db, invite_id, user_id
            )
            logger.info("Invite %s rejected by %s", invite_id, user_id)
            return {**result, "message": "Invite declined."}

        outcome = run_in_transaction(
            db, InviteService._accept_in_transaction, db, invite_id, user_id
        )
        slot_key = invite.get("tournamentId")
        result: dict[str, Any] = {"success": True, "status": InviteStatus.ACCEPTED.value}
        if outcome.get("teamCreated"):
            logger.info("Invite %s completed team %s", invite_id, outcome["teamId"])
            notifications.emit(
                notifications.team_created,
                slot_key,
                team_id=outcome["teamId"],
                team_name=invite.get("teamName"),
            )
            notifications.tournament_changed(slot_key)
            result.update(teamId=outcome["teamId"], message="Team registered successfully")
        elif outcome.get("joined"):
            notifications.emit(
                notifications.roster_changed, slot_key, team_id=outcome["teamId"]
            )
            notifications.tournament_changed(slot_key)
            result.update(teamId=outcome["teamId"], message="You have joined the team.")
        else:
            result["message"] = "Invite accepted. Waiting for other teammates."
        return result

    # ----- queries -----

    @staticmethod
    def list_received(user_id: str, db: Client | None = None) -> list[dict[str, Any]]:
        """Pending invites addressed to ``user_id``, newest first."""
        if db is None:
            db = firestore.client()
        query = (
            db.collection(INVITES_COLLECTION)
            .where(filter=firestore.FieldFilter("toUserId", "==", user_id))
            .where(filter=firestore.FieldFilter("status", "==", InviteStatus.PENDING.value))
        )
        invites = [snapshot_to_dict(doc) for doc in query.stream()]
        return sorted(invites, key=creation_order, reverse=True)

    @staticmethod
    def list_sent(
        captain_id: str,
        tournament_id: str | None = None,
        team_name: str | None = None,
        db: Client | None = None,
    ) -> list[dict[str, Any]]:
        """Invites sent by ``captain_id``, optionally for one tournament/team."""
        if db is None:
            db = firestore.client()
        query = db.collection(INVITES_COLLECTION).where(
            filter=firestore.FieldFilter("captainId", "==", captain_id)
        )
        if tournament_id:
            query = query.where(
                filter=firestore.FieldFilter("tournamentId", "==", tournament_id)
            )
        if team_name:
            query = query.where(filter=firestore.FieldFilter("teamName", "==", team_name))
        invites = [snapshot_to_dict(doc) for doc in query.stream()]
        return sorted(invites, key=creation_order, reverse=True)
