"""Side-channel signals for realtime consumers.

Receivers (push broadcasters, webhooks) subscribe with ``signal.connect``.
Signals are sent after the owning transaction commits; delivery is best
effort and a failing receiver never affects the operation that emitted it.
"""

from __future__ import annotations

import logging
from typing import Any

from blinker import Namespace

logger = logging.getLogger(__name__)

_signals = Namespace()

team_created = _signals.signal("team-created")
team_moved = _signals.signal("team-moved")
teams_changed = _signals.signal("teams-changed")
tournaments_changed = _signals.signal("tournaments-changed")
roster_changed = _signals.signal("roster-changed")


def emit(signal: Any, sender: Any, **payload: Any) -> None:
    """Send ``signal`` and log, rather than raise, receiver failures."""
    try:
        signal.send(sender, **payload)
    except Exception as e:  # noqa: BLE001
        logger.warning("Broadcast of %s failed: %s", signal.name, e)


def tournament_changed(slot_key: str) -> None:
    """Announce that the team list and counters of one bucket changed."""
    emit(teams_changed, slot_key)
    emit(tournaments_changed, slot_key)
