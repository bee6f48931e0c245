"""Data models for the tournament blueprint."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TypedDict

from teamforge.core.types import FirestoreDocument


class TournamentStatus(str, Enum):
    """Lifecycle of a tournament."""

    DRAFT = "draft"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    ONGOING = "ongoing"
    COMPLETED = "completed"


TOURNAMENT_STATUS_TRANSITIONS: dict[TournamentStatus, frozenset[TournamentStatus]] = {
    TournamentStatus.DRAFT: frozenset({TournamentStatus.REGISTRATION_OPEN}),
    TournamentStatus.REGISTRATION_OPEN: frozenset(
        {TournamentStatus.REGISTRATION_CLOSED}
    ),
    TournamentStatus.REGISTRATION_CLOSED: frozenset(
        {TournamentStatus.REGISTRATION_OPEN, TournamentStatus.ONGOING}
    ),
    TournamentStatus.ONGOING: frozenset({TournamentStatus.COMPLETED}),
    TournamentStatus.COMPLETED: frozenset(),
}


class SlotCounters(TypedDict, total=False):
    """Capacity fields shared by tournaments and legacy date buckets."""

    maxTeams: int
    registeredTeams: int
    isClosed: bool
    closedByAdmin: bool


class Tournament(FirestoreDocument, SlotCounters, total=False):
    """A tournament document in Firestore."""

    name: str
    type: str
    date: str
    startTime: str
    registrationDeadline: str
    teamSize: int
    status: str
    description: Optional[str]
    prize: Optional[str]
    serverIP: Optional[str]


class TournamentDate(FirestoreDocument, SlotCounters, total=False):
    """A legacy date bucket; the document id is the date string."""

    date: str


class TakenPlayer(TypedDict):
    """A submitted player whose roster key is already in use."""

    index: int
    minecraftIGN: str
    discordUsername: str


def tournament_summary(data: dict[str, Any]) -> dict[str, Any]:
    """Project the fields a registration form needs from a tournament."""
    return {
        "id": data.get("id"),
        "name": data.get("name"),
        "date": data.get("date"),
        "teamSize": data.get("teamSize"),
        "status": data.get("status"),
        "maxTeams": data.get("maxTeams", 0),
        "registeredTeams": data.get("registeredTeams", 0),
        "isClosed": bool(data.get("isClosed")),
    }
