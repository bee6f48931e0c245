"""Data models for the teams feature."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TypedDict

from teamforge.core.types import FirestoreDocument


class TeamStatus(str, Enum):
    """Review state of a registered team."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Moving back to PENDING additionally needs super-admin privilege.
TEAM_STATUS_TRANSITIONS: dict[TeamStatus, frozenset[TeamStatus]] = {
    TeamStatus.PENDING: frozenset({TeamStatus.APPROVED, TeamStatus.REJECTED}),
    TeamStatus.APPROVED: frozenset({TeamStatus.REJECTED, TeamStatus.PENDING}),
    TeamStatus.REJECTED: frozenset({TeamStatus.APPROVED, TeamStatus.PENDING}),
}


class Player(TypedDict, total=False):
    """One roster slot."""

    userId: str
    minecraftIGN: str
    discordUsername: str


class Team(FirestoreDocument, total=False):
    """A team document in Firestore."""

    teamName: str
    tournamentId: Optional[str]
    tournamentDate: Optional[str]
    captainId: Optional[str]
    players: list[Player]
    memberIds: list[str]
    rewardReceiverIGN: str
    status: str
    incompleteSince: Any


def member_ids(captain_id: str | None, players: list[Player]) -> list[str]:
    """Account ids attached to a team, captain first, without duplicates."""
    ids: list[str] = []
    for uid in [captain_id, *(p.get("userId") for p in players)]:
        if uid and uid not in ids:
            ids.append(uid)
    return ids


def reassign_reward_receiver(current: str, players: list[Player]) -> str:
    """Keep ``current`` if still rostered, else fall back to the first player."""
    igns = [(p.get("minecraftIGN") or "").strip() for p in players]
    igns = [ign for ign in igns if ign]
    if (current or "").strip() in igns:
        return current
    return igns[0] if igns else ""
