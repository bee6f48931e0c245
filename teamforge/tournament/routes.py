"""Routes for the tournament blueprint: public reads and registration helpers."""

from __future__ import annotations

from typing import Any

from flask import g, jsonify, request

from . import bp
from .ledger import SlotRef
from .services import TournamentService


@bp.route("/<string:tournament_id>", methods=["GET"])
def view_tournament(tournament_id: str) -> Any:
    """Summary of one tournament for the registration form."""
    return jsonify(TournamentService.get_summary(tournament_id))


@bp.route("/<string:tournament_id>/teams", methods=["GET"])
def list_teams(tournament_id: str) -> Any:
    """Teams registered for a tournament, newest first."""
    teams = TournamentService.list_teams(SlotRef(tournament_id=tournament_id))
    return jsonify({"teams": teams, "count": len(teams)})


@bp.route("/<string:tournament_id>/check-name", methods=["GET"])
def check_name(tournament_id: str) -> Any:
    """Whether a team name is still available."""
    return jsonify(
        TournamentService.check_team_name(tournament_id, request.args.get("name"))
    )


@bp.route("/<string:tournament_id>/suggest-names", methods=["GET"])
def suggest_names(tournament_id: str) -> Any:
    """Team names nobody in the tournament uses yet."""
    names = TournamentService.suggest_team_names(
        tournament_id, request.args.get("limit", 5)
    )
    return jsonify({"suggestions": names})


@bp.route("/<string:tournament_id>/check-players", methods=["POST"])
def check_players(tournament_id: str) -> Any:
    """Submitted players already registered on another team."""
    body = request.get_json(silent=True) or {}
    captain_id = g.user["uid"] if g.user else None
    taken = TournamentService.check_players(
        tournament_id,
        body.get("players"),
        team_name=body.get("teamName"),
        captain_id=captain_id,
    )
    return jsonify({"taken": taken})
