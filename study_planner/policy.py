# -*- coding: utf-8 -*-
"""Per-category allocation policy: day budgets and the matching prompt rules."""
import math

from study_planner.models import EventCategory

SHORT_HOMEWORK_HOURS = 2


def is_short_homework(category: EventCategory, hours: float) -> bool:
    return category is EventCategory.HOMEWORK and hours <= SHORT_HOMEWORK_HOURS


def day_budget(category: EventCategory, hours: float) -> int:
    """Maximum number of distinct days a plan may use.

    Homework of two hours or less is done in one day, longer homework uses a
    third of its hours as days, everything else half of its hours.
    """
    if is_short_homework(category, hours):
        return 1
    if category is EventCategory.HOMEWORK:
        return max(1, math.ceil(hours / 3))
    return max(1, math.ceil(hours / 2))


def rules_prompt_name(category: EventCategory, hours: float) -> str:
    """Name of the prompt file carrying the allocation rules for this plan."""
    if category is EventCategory.HOMEWORK:
        return "rules_homework_short" if is_short_homework(category, hours) else "rules_homework_long"
    if category is EventCategory.PROJECT:
        return "rules_project"
    return "rules_exam"
