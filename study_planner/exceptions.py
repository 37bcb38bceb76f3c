"""Exceptions raised by the study planner."""


class StudyPlannerError(Exception):
    """Base class for study planner errors."""


class InvalidPreparationError(StudyPlannerError, ValueError):
    """The target event cannot be planned for (no preparation flag or bad hours)."""


class OracleConfigurationError(StudyPlannerError, RuntimeError):
    """The text-generation oracle cannot be built, e.g. the API key is missing."""


class PlanParseError(StudyPlannerError, ValueError):
    """The oracle reply does not contain a usable JSON array of sessions."""
