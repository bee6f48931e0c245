"""Helper functions for user-related data."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from teamforge.constants import USERS_COLLECTION
from teamforge.errors import NotFoundError, ValidationError
from teamforge.utils import clean_str

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

    from teamforge.teams.models import Player


def smart_display_name(user: dict[str, Any] | None) -> str:
    """Return the best name to show for a user."""
    if not user:
        return "This player"
    return clean_str(user.get("displayName")) or clean_str(user.get("name")) or "This player"


def load_profiles(
    db: Client,
    user_ids: Iterable[str],
    transaction: Transaction | None = None,
    required: bool = True,
) -> dict[str, dict[str, Any]]:
    """Fetch user documents by id.

    Raises:
        NotFoundError: If ``required`` and any id has no user document.
    """
    profiles: dict[str, dict[str, Any]] = {}
    for uid in dict.fromkeys(user_ids):
        snapshot = db.collection(USERS_COLLECTION).document(uid).get(
            transaction=transaction
        )
        if snapshot.exists:
            data = snapshot.to_dict() or {}
            data["id"] = snapshot.id
            profiles[uid] = data
        elif required:
            raise NotFoundError(f"User {uid} not found.")
    return profiles


def player_from_profile(uid: str, profile: dict[str, Any]) -> Player:
    """Build a roster entry from a linked account's profile."""
    ign = clean_str(profile.get("minecraftIGN"))
    discord = clean_str(profile.get("discordUsername"))
    if not ign or not discord:
        raise ValidationError(
            f"{smart_display_name(profile)} must set a Minecraft IGN and Discord "
            "username before joining a team.",
            field="profile",
        )
    return {"userId": uid, "minecraftIGN": ign, "discordUsername": discord}
