"""Custom exception classes for the application."""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for a JSON response body."""
        return {"error": self.message}


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed.", field=None):
        """Initialize the error."""
        super().__init__(message, 400)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        """Include the offending field when known."""
        body = super().to_dict()
        if self.field is not None:
            body["field"] = self.field
        return body


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class ConflictError(AppError):
    """Raised when a write collides with existing state."""

    def __init__(self, message="Resource already exists.", identifier=None):
        """Initialize the error."""
        super().__init__(message, 409)
        self.identifier = identifier

    def to_dict(self) -> dict[str, Any]:
        """Include the conflicting identifier when known."""
        body = super().to_dict()
        if self.identifier is not None:
            body["conflict"] = self.identifier
        return body


class DuplicatePlayerError(ConflictError):
    """Raised when a player's (IGN, Discord) key is already rostered."""

    def __init__(self, player, where="this tournament"):
        """Initialize the error."""
        ign = player.get("minecraftIGN", "")
        super().__init__(
            f'A player with Minecraft IGN "{ign}" and that Discord is already '
            f"registered for {where}.",
            identifier={
                "minecraftIGN": ign,
                "discordUsername": player.get("discordUsername", ""),
            },
        )
        self.player = player


class CapacityExceededError(AppError):
    """Raised when a tournament has no free slot at commit time."""

    def __init__(self, message="No slots remaining for this tournament."):
        """Initialize the error."""
        super().__init__(message, 409)


class ForbiddenError(AppError):
    """Raised when the caller lacks the required role or relationship."""

    def __init__(self, message="Forbidden."):
        """Initialize the error."""
        super().__init__(message, 403)


class TransactionAbortedError(AppError):
    """Raised when the store aborts a transaction; safe to retry."""

    def __init__(self, message="The operation could not be completed. Please retry."):
        """Initialize the error."""
        super().__init__(message, 503)
