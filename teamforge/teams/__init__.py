"""Teams blueprint."""

from flask import Blueprint

bp = Blueprint("teams", __name__)

from . import routes  # noqa: E402, F401
from .services import RegistrationSubmission, TeamService  # noqa: E402

__all__ = ["RegistrationSubmission", "TeamService", "routes"]
