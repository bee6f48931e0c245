"""Roster uniqueness index.

Derived, never stored: the set of ``(IGN, Discord)`` keys and account ids
already rostered in one tournament. Register, move, replace and roster-edit
paths all load the bucket's teams once and ask this module about collisions.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from teamforge.errors import DuplicatePlayerError, ValidationError
from teamforge.utils import clean_str, snapshot_to_dict

from .models import Player

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

    from teamforge.tournament.ledger import SlotRef


def player_key(player: dict[str, Any]) -> tuple[str, str]:
    """IGN compared case-insensitively; Discord handle compared as typed."""
    return (
        clean_str(player.get("minecraftIGN")).lower(),
        clean_str(player.get("discordUsername")),
    )


def normalize_players(raw_players: Any) -> list[Player]:
    """Validate and trim a submitted roster."""
    if not isinstance(raw_players, list):
        raise ValidationError("players must be an array.", field="players")

    players: list[Player] = []
    seen: set[tuple[str, str]] = set()
    for i, raw in enumerate(raw_players):
        if not isinstance(raw, dict):
            raise ValidationError(
                f"players[{i}] must have minecraftIGN and discordUsername.",
                field=f"players[{i}]",
            )
        ign = clean_str(raw.get("minecraftIGN"))
        discord = clean_str(raw.get("discordUsername"))
        if not ign or not discord:
            raise ValidationError(
                f"players[{i}] must have minecraftIGN and discordUsername "
                "(non-empty strings).",
                field=f"players[{i}]",
            )
        player: Player = {"minecraftIGN": ign, "discordUsername": discord}
        if clean_str(raw.get("userId")):
            player["userId"] = clean_str(raw.get("userId"))

        key = player_key(player)
        if key in seen:
            raise ValidationError(
                "Same Minecraft IGN and Discord cannot appear twice. "
                f"Player {i + 1} duplicates another.",
                field=f"players[{i}]",
            )
        seen.add(key)
        players.append(player)
    return players


def load_teams(
    db: Client, slot: SlotRef, transaction: Transaction | None = None
) -> list[dict[str, Any]]:
    """Every team billed against ``slot``, as dicts carrying ``id``."""
    teams = []
    for doc in slot.teams_query(db).stream(transaction=transaction):
        data = snapshot_to_dict(doc)
        if data:
            teams.append(data)
    return teams


class RosterIndex:
    """Collision queries over one tournament's loaded teams."""

    def __init__(
        self, teams: Iterable[dict[str, Any]], exclude_team_id: str | None = None
    ) -> None:
        """Index ``teams``, ignoring the team being edited or moved."""
        self.teams = [t for t in teams if t.get("id") != exclude_team_id]
        self.keys: set[tuple[str, str]] = set()
        self.account_ids: set[str] = set()
        for team in self.teams:
            for player in team.get("players", []):
                key = player_key(player)
                if key[0] and key[1]:
                    self.keys.add(key)
            self.account_ids.update(team.get("memberIds", []))

    @classmethod
    def for_slot(
        cls,
        db: Client,
        slot: SlotRef,
        exclude_team_id: str | None = None,
        transaction: Transaction | None = None,
    ) -> RosterIndex:
        """Load and index the teams of ``slot``."""
        return cls(load_teams(db, slot, transaction), exclude_team_id)

    def conflicts(self, candidates: list[Player]) -> list[tuple[int, Player]]:
        """Candidates whose roster key is already used by another team."""
        return [
            (i, p) for i, p in enumerate(candidates) if player_key(p) in self.keys
        ]

    def ensure_players_free(self, candidates: list[Player], where: str) -> None:
        """Raise :class:`DuplicatePlayerError` on the first colliding candidate."""
        taken = self.conflicts(candidates)
        if taken:
            raise DuplicatePlayerError(taken[0][1], where)

    def team_named(self, team_name: str) -> dict[str, Any] | None:
        """The team holding ``team_name`` exactly as stored."""
        for team in self.teams:
            if team.get("teamName") == team_name:
                return team
        return None

    def is_rostered(self, user_id: str) -> bool:
        """Whether an account already captains or plays on a team here."""
        return user_id in self.account_ids

    def rostered(self, user_ids: Iterable[str]) -> list[str]:
        """The subset of ``user_ids`` already on a team here, in input order."""
        return [uid for uid in user_ids if uid in self.account_ids]
