"""User profile helpers used by registration."""

from .helpers import load_profiles, player_from_profile, smart_display_name

__all__ = ["load_profiles", "player_from_profile", "smart_display_name"]
