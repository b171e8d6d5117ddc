"""
Grade computation and mark validation.

All functions are pure. The band table and the component maxima travel in a
GradingPolicy value; callers that do not pass one get the policy built from
the application config (GRADE_SCALE / MAX_MARKS).
"""
import math
from collections import namedtuple

from flask import current_app, has_app_context

from config.config import Config

NOT_AVAILABLE = "N/A"

COMPONENT_LABELS = (
    ("cats", "CATs"),
    ("coursework", "Course Work"),
    ("final_exam", "Final Exam"),
)

GradeBand = namedtuple("GradeBand", ["label", "min", "max"])


class GradingConfigError(ValueError):
    pass


class GradingPolicy:
    """Grade bands plus the maximum score of each mark component."""

    def __init__(self, bands, max_marks):
        self.bands = tuple(GradeBand(*band) for band in bands)
        self.max_marks = dict(max_marks)
        self._check_bands()
        self._check_max_marks()

    @classmethod
    def from_config(cls, config):
        return cls(config["GRADE_SCALE"], config["MAX_MARKS"])

    @property
    def labels(self):
        return [band.label for band in self.bands]

    def _check_bands(self):
        if not self.bands:
            raise GradingConfigError("At least one grade band is required")

        ordered = sorted(self.bands, key=lambda b: b.min)
        if ordered[0].min != 0 or ordered[-1].max != 100:
            raise GradingConfigError("Grade bands must cover 0 to 100")

        for band in ordered:
            if band.min > band.max:
                raise GradingConfigError(f"Grade band {band.label} has min above max")

        for lower, upper in zip(ordered, ordered[1:]):
            if upper.min != lower.max + 1:
                raise GradingConfigError(
                    f"Grade bands {lower.label} and {upper.label} overlap or leave a gap"
                )

    def _check_max_marks(self):
        for key, _ in COMPONENT_LABELS:
            if key not in self.max_marks:
                raise GradingConfigError(f"Missing maximum for {key}")


def default_policy():
    if has_app_context():
        policy = current_app.extensions.get("grading_policy")
        if policy is None:
            policy = GradingPolicy.from_config(current_app.config)
            current_app.extensions["grading_policy"] = policy
        return policy
    return GradingPolicy(Config.GRADE_SCALE, Config.MAX_MARKS)


def total(mark):
    """
    Sum of the three components. A missing mark totals 0 and a missing
    component counts as 0. Accepts a Mark model, a mapping or None.
    """
    if mark is None:
        return 0
    if isinstance(mark, dict):
        values = (mark.get("cats"), mark.get("coursework"), mark.get("final_exam"))
    else:
        values = (mark.cats, mark.coursework, mark.final_exam)
    return sum(v or 0 for v in values)


def grade(total_score, policy=None):
    """Label of the band containing total_score, or N/A when none does."""
    policy = policy or default_policy()
    if total_score is None:
        return NOT_AVAILABLE
    for band in policy.bands:
        if band.min <= total_score <= band.max:
            return band.label
    return NOT_AVAILABLE


def component_grade(score, max_score, policy=None):
    """
    Grade a single component by rescaling it to a 0-100 percentage.

    Unlike the earlier grade calculator, which looked up the raw
    percentage and answered N/A for values between two integer bands
    (50/60 is 83.33%), the percentage is floored first, so 50/60 grades A.
    """
    if score is None or score < 0 or max_score is None or max_score <= 0:
        return NOT_AVAILABLE
    percentage = math.floor(score / max_score * 100)
    return grade(percentage, policy)


def validate_marks(cats, coursework, final_exam, policy=None):
    """
    Return the message for the first component outside [0, max], checked in
    the order CATs, Course Work, Final Exam, or None when all are in range.
    """
    policy = policy or default_policy()
    values = {"cats": cats, "coursework": coursework, "final_exam": final_exam}
    for key, label in COMPONENT_LABELS:
        maximum = policy.max_marks[key]
        value = values[key]
        if value is None or value < 0 or value > maximum:
            return f"{label} must be between 0 and {maximum}."
    return None
