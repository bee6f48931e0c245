"""Routes for the teams blueprint."""

from __future__ import annotations

from typing import Any

from flask import g, jsonify, request
from flask_wtf.csrf import generate_csrf

from teamforge.auth.decorators import login_required
from teamforge.utils import clean_str

from . import bp
from .services import RegistrationSubmission, TeamService


@bp.route("/csrf-token", methods=["GET"])
def csrf_token() -> Any:
    """Token to send back in the ``X-CSRFToken`` header."""
    return jsonify({"csrfToken": generate_csrf()})


@bp.route("/register", methods=["POST"])
def register() -> Any:
    """Register a team for a tournament or a legacy date."""
    body = request.get_json(silent=True)
    captain_id = None
    if isinstance(body, dict) and clean_str(body.get("tournamentId")):
        # Tournament registrations need an account; legacy dates do not.
        if g.user is None:
            return jsonify({"error": "Sign in to register for this tournament."}), 401
        captain_id = g.user["uid"]

    submission = RegistrationSubmission.from_json(body, captain_id=captain_id)
    result = TeamService.register_team(submission)
    return jsonify({"success": True, **result}), 201 if result["created"] else 200


@bp.route("/teams", methods=["GET"])
@login_required
def my_teams() -> Any:
    """Teams the signed-in user captains or plays on."""
    return jsonify({"teams": TeamService.list_for_member(g.user["uid"])})


@bp.route("/teams/<string:team_id>", methods=["GET"])
@login_required
def view_team(team_id: str) -> Any:
    """A team the signed-in user captains or plays on."""
    return jsonify(TeamService.get_team_for_member(team_id, g.user["uid"]))


@bp.route("/teams/<string:team_id>/leave", methods=["POST"])
@login_required
def leave_team(team_id: str) -> Any:
    """Leave a team; solo teams are withdrawn."""
    return jsonify(TeamService.leave_team(team_id, g.user["uid"]))


@bp.route("/teams/<string:team_id>/players/<string:user_id>", methods=["DELETE"])
@login_required
def remove_player(team_id: str, user_id: str) -> Any:
    """Captain removes a teammate."""
    return jsonify(TeamService.remove_player(team_id, g.user["uid"], user_id))


@bp.route("/teams/<string:team_id>/transfer", methods=["POST"])
@login_required
def transfer_captaincy(team_id: str) -> Any:
    """Hand the captain role to a teammate."""
    body = request.get_json(silent=True) or {}
    return jsonify(
        TeamService.transfer_captaincy(
            team_id, g.user["uid"], clean_str(body.get("newCaptainUserId"))
        )
    )
