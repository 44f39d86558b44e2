"""Exception types shared across the service."""

from __future__ import annotations


class HibiLogError(Exception):
    """Base class for application errors."""


class ProfileNotFoundError(HibiLogError):
    """No pet profile row exists for the user."""

    def __init__(self, user_id: object) -> None:
        super().__init__(f"No pet profile for user {user_id}")
        self.user_id = user_id


class ProfileAlreadyExistsError(HibiLogError):
    """A concurrent session created the pet profile first."""

    def __init__(self, user_id: object) -> None:
        super().__init__(f"Pet profile already exists for user {user_id}")
        self.user_id = user_id


class PetSyncError(HibiLogError):
    """Pet state could not be reconciled with the backend. Safe to retry."""


class ConfigurationError(HibiLogError):
    """A required secret or key is missing. Not retried."""


class InvalidAchievementRuleError(ValueError):
    """An achievement catalog entry is malformed."""
