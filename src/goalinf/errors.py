"""Defines the exceptions raised by the goal inference filters."""


class GoalInferenceError(Exception):
    """Base class for all goal inference errors."""

    pass


class ConfigurationError(GoalInferenceError, ValueError):
    """Raised when a filter or scheduler is configured with invalid values.

    This includes an empty hypothesis set and kinematic limits that do not
    produce a valid standard deviation. These are fatal to the object that
    raised them and should not be retried.
    """

    pass


class InputValidationError(GoalInferenceError, ValueError):
    """Raised when a velocity or prior passed to a filter is malformed.

    Non-finite components and wrongly sized inputs fall in this category. The
    scheduler catches these per agent and skips that agent for the tick.
    """

    pass
