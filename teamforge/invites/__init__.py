"""Invites blueprint."""

from flask import Blueprint

bp = Blueprint("invites", __name__, url_prefix="/invites")

from . import routes  # noqa: E402, F401
from .services import InviteService  # noqa: E402

__all__ = ["InviteService", "routes"]
