"""Admin routes: tournament setup, team review, moves and bulk actions."""

from __future__ import annotations

from typing import Any

from flask import current_app, g, jsonify, request

from teamforge.auth.decorators import login_required
from teamforge.errors import ValidationError
from teamforge.teams.services import RegistrationSubmission, TeamService
from teamforge.tournament.forms import TournamentDateForm, TournamentForm
from teamforge.tournament.ledger import SlotRef
from teamforge.tournament.services import TournamentService

from . import bp
from .services import AdminService

BULK_STATUS_ACTIONS = {"approve": "approved", "reject": "rejected", "pending": "pending"}


def _json_body() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")
    return body


def _form_error(form: Any) -> ValidationError:
    """First field error of an invalid form."""
    for field, errors in form.errors.items():
        if errors:
            return ValidationError(f"{field}: {errors[0]}", field=field)
    return ValidationError()


@bp.route("/tournaments", methods=["POST"])
@login_required(admin_required=True)
def create_tournament() -> Any:
    """Create a tournament in draft."""
    form = TournamentForm()
    if not form.validate_on_submit():
        raise _form_error(form)
    tournament_id = TournamentService.create_tournament(form.data)
    current_app.logger.info(f"Admin {g.user['uid']} created tournament {tournament_id}")
    return jsonify({"success": True, "id": tournament_id}), 201


@bp.route("/tournament-dates", methods=["POST"])
@login_required(admin_required=True)
def create_tournament_date() -> Any:
    """Create a legacy date bucket."""
    form = TournamentDateForm()
    if not form.validate_on_submit():
        raise _form_error(form)
    date = TournamentService.create_tournament_date(form.date.data, form.maxTeams.data)
    return jsonify({"success": True, "date": date}), 201


@bp.route("/tournaments/<string:tournament_id>", methods=["PATCH"])
@login_required(admin_required=True)
def update_tournament(tournament_id: str) -> Any:
    """Edit a tournament's details or capacity."""
    tournament = TournamentService.update_tournament(tournament_id, _json_body())
    return jsonify({"success": True, "tournament": tournament})


@bp.route("/tournaments/<string:tournament_id>", methods=["DELETE"])
@login_required(admin_required=True)
def delete_tournament(tournament_id: str) -> Any:
    """Delete a tournament with no registered teams."""
    TournamentService.delete_tournament(tournament_id)
    current_app.logger.info(f"Admin {g.user['uid']} deleted tournament {tournament_id}")
    return jsonify({"success": True, "message": "Tournament deleted"})


@bp.route("/tournament-dates/<string:date>", methods=["PATCH"])
@login_required(admin_required=True)
def update_tournament_date(date: str) -> Any:
    """Change a legacy date bucket's capacity."""
    bucket = TournamentService.update_tournament_date(date, _json_body())
    return jsonify({"success": True, "tournamentDate": bucket})


@bp.route("/tournament-dates/<string:date>", methods=["DELETE"])
@login_required(admin_required=True)
def delete_tournament_date(date: str) -> Any:
    """Delete a legacy date bucket with no registered teams."""
    TournamentService.delete_tournament_date(date)
    return jsonify({"success": True, "message": "Tournament date deleted"})


@bp.route("/tournaments/<string:tournament_id>/status", methods=["POST"])
@login_required(admin_required=True)
def set_tournament_status(tournament_id: str) -> Any:
    """Advance a tournament's lifecycle."""
    body = _json_body()
    result = TournamentService.set_tournament_status(
        tournament_id,
        body.get("status"),
        grace_hours=current_app.config["INCOMPLETE_TEAM_GRACE_HOURS"],
    )
    return jsonify({"success": True, **result})


@bp.route("/tournaments/<string:tournament_id>/close", methods=["POST"])
@login_required(admin_required=True)
def force_close_tournament(tournament_id: str) -> Any:
    """Force-close (or reopen) registration for a tournament."""
    body = _json_body()
    result = TournamentService.set_forced_closed(
        SlotRef(tournament_id=tournament_id), bool(body.get("closed", True))
    )
    return jsonify({"success": True, **result})


@bp.route("/tournament-dates/<string:date>/close", methods=["POST"])
@login_required(admin_required=True)
def force_close_date(date: str) -> Any:
    """Force-close (or reopen) a legacy date bucket."""
    body = _json_body()
    result = TournamentService.set_forced_closed(
        SlotRef(tournament_date=date), bool(body.get("closed", True))
    )
    return jsonify({"success": True, **result})


@bp.route("/tournaments/<string:tournament_id>/teams", methods=["POST"])
@login_required(admin_required=True)
def add_team(tournament_id: str) -> Any:
    """Add a captain-less team regardless of tournament status."""
    submission = RegistrationSubmission.from_json(
        _json_body(), slot=SlotRef(tournament_id=tournament_id)
    )
    result = TeamService.register_team(submission, require_open=False)
    return jsonify({"success": True, **result}), 201 if result["created"] else 200


@bp.route("/tournaments/<string:tournament_id>/reconcile", methods=["POST"])
@login_required(admin_required=True)
def reconcile(tournament_id: str) -> Any:
    """Disband teams left incomplete past the grace period."""
    body = request.get_json(silent=True) or {}
    disbanded = TeamService.reconcile_incomplete_teams(
        SlotRef(tournament_id=tournament_id),
        grace_hours=current_app.config["INCOMPLETE_TEAM_GRACE_HOURS"],
        force=bool(body.get("force", False)),
    )
    return jsonify({"success": True, "disbandedTeamIds": disbanded})


@bp.route("/teams/<string:team_id>", methods=["PATCH"])
@login_required(admin_required=True)
def update_team(team_id: str) -> Any:
    """Move a team, edit its roster, or change its review status."""
    body = _json_body()
    role = g.user.get("role")

    if body.get("tournamentId") or body.get("tournamentDate"):
        destination = SlotRef.parse(body.get("tournamentId"), body.get("tournamentDate"))
        team = TeamService.move_team(team_id, destination, body.get("status"), role)
    elif "players" in body or "rewardReceiverIGN" in body:
        team = TeamService.update_roster(
            team_id, body.get("players"), body.get("rewardReceiverIGN"), role
        )
    elif "status" in body:
        team = TeamService.set_status(team_id, body.get("status"), role)
    else:
        raise ValidationError(
            "Provide a destination, players/rewardReceiverIGN, or status."
        )
    return jsonify({"success": True, "team": team})


@bp.route("/teams/<string:team_id>", methods=["DELETE"])
@login_required(admin_required=True)
def disband_team(team_id: str) -> Any:
    """Disband a team and release its slot."""
    return jsonify(TeamService.disband_team(team_id))


@bp.route("/teams/bulk", methods=["POST"])
@login_required(admin_required=True)
def bulk_teams() -> Any:
    """Approve, reject, reset or disband many teams, one transaction each."""
    body = _json_body()
    action = body.get("action")
    workers = current_app.config["BULK_MAX_WORKERS"]
    if action == "disband":
        result = AdminService.bulk_disband(body.get("teamIds"), max_workers=workers)
    elif action in BULK_STATUS_ACTIONS:
        result = AdminService.bulk_set_status(
            body.get("teamIds"),
            BULK_STATUS_ACTIONS[action],
            actor_role=g.user.get("role"),
            max_workers=workers,
        )
    else:
        raise ValidationError(
            "action must be approve, reject, pending or disband.", field="action"
        )
    return jsonify(result)
