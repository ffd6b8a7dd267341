"""
Domain exceptions - Semantic error types for submission intake.

This module defines domain-specific exceptions that communicate
workflow and storage failures without leaking infrastructure details.
"""


class IntakeError(Exception):
    """Base class for intake domain errors."""

    pass


class ClientSequenceError(IntakeError):
    """Stage submitted without (or with an unknown) identity from stage 1."""

    pass


class StoreInitError(IntakeError):
    """Backing store missing, unreadable or corrupt. Recovered as empty."""

    pass


class StoreWriteError(IntakeError):
    """Ledger could not persist a submission."""

    pass


class NotificationError(IntakeError):
    """Mail transport verification or send failure."""

    pass
