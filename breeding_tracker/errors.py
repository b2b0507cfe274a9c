from __future__ import annotations


class BreedingTrackerError(Exception):
    """Base class for every error raised by breeding_tracker."""


class InvalidTransitionError(BreedingTrackerError):
    """The requested status change is not legal from the record's current status."""


class UnknownStatusError(InvalidTransitionError, ValueError):
    """A status value matches neither the canonical nor a legacy vocabulary."""


class MissingOutcomeDateError(BreedingTrackerError):
    """Finalizing a record requires the real outcome date."""


class MissingPredictionError(BreedingTrackerError):
    """Validation needs a start date and a prediction on the record."""


class InvalidDateRangeError(BreedingTrackerError, ValueError):
    """The real outcome date precedes the record's start date."""


class PredictionLockedError(BreedingTrackerError):
    """The record's prediction can no longer be superseded."""


class TransportError(BreedingTrackerError):
    """A collaborator (API, database) failed to answer."""
