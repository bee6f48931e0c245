"""Routes for the invites blueprint."""

from __future__ import annotations

from typing import Any

from flask import g, jsonify, request

from teamforge.auth.decorators import login_required
from teamforge.errors import ValidationError

from . import bp
from .services import InviteService


@bp.route("", methods=["POST"])
@login_required
def send_invites() -> Any:
    """Captain invites teammates for a team name."""
    body = request.get_json(silent=True) or {}
    result = InviteService.send_invites(
        g.user["uid"],
        body.get("tournamentId"),
        body.get("teamName"),
        body.get("userIds"),
    )
    return jsonify(result), 201


@bp.route("", methods=["GET"])
@login_required
def list_invites() -> Any:
    """Invites received (pending) or sent by the signed-in user."""
    kind = request.args.get("type", "received")
    if kind == "received":
        invites = InviteService.list_received(g.user["uid"])
    elif kind == "sent":
        invites = InviteService.list_sent(
            g.user["uid"],
            tournament_id=request.args.get("tournamentId"),
            team_name=request.args.get("teamName"),
        )
    else:
        raise ValidationError("type must be 'received' or 'sent'.", field="type")
    return jsonify({"invites": invites})


@bp.route("/<string:invite_id>", methods=["PATCH"])
@login_required
def respond(invite_id: str) -> Any:
    """Accept or reject an invite."""
    body = request.get_json(silent=True) or {}
    return jsonify(InviteService.respond(invite_id, g.user["uid"], body.get("action")))
