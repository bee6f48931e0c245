"""Session-based authorization helpers.

Identity is provisioned elsewhere; this package only reads ``g.user``.
"""

from .decorators import login_required

__all__ = ["login_required"]
