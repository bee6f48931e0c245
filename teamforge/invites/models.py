"""Data models for team invites."""

from __future__ import annotations

from enum import Enum
from typing import Any, TypedDict


class InviteStatus(str, Enum):
    """State of one invite. Only PENDING invites can be answered."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


INVITE_STATUS_TRANSITIONS: dict[InviteStatus, frozenset[InviteStatus]] = {
    InviteStatus.PENDING: frozenset({InviteStatus.ACCEPTED, InviteStatus.REJECTED}),
    InviteStatus.ACCEPTED: frozenset(),
    InviteStatus.REJECTED: frozenset(),
}


class Invite(TypedDict, total=False):
    """A team invite document in Firestore.

    Invites are grouped by the (captainId, tournamentId, teamName) triple.
    """

    id: str
    captainId: str
    toUserId: str
    tournamentId: str
    teamName: str
    status: str
    order: int
    createdAt: Any
    respondedAt: Any
