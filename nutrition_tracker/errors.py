"""Exception types shared by the stores, the tracker and the presentation layer."""

from __future__ import annotations


class NutritionTrackerError(Exception):
    """Base class for errors scoped to a single user action."""


class ValidationError(NutritionTrackerError, ValueError):
    """Raised for non-numeric or out-of-range input before the store is touched."""


class NotFoundError(NutritionTrackerError, LookupError):
    """Raised when a referenced food item or entry does not exist for the user."""


class AuthenticationError(NutritionTrackerError):
    """Raised for bad credentials or an inactive session."""


class DuplicateUserError(AuthenticationError):
    """Raised when registering an email that already has an account."""


class BackendUnavailable(NutritionTrackerError, IOError):
    """Raised when the document store cannot be read or written.

    The action that triggered it can be retried as-is.
    """
