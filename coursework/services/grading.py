import logging
from datetime import datetime

from coursework.core.config import MAX_GRADE, MIN_GRADE
from coursework.core.errors import ValidationError
from coursework.services.lateness import as_utc

logger = logging.getLogger(__name__)


class GradingEngine:
    """Validates a grade and produces the four grading fields as one unit.

    The engine never mutates the submission itself; the returned mapping is
    written by the store in a single statement, so the fields change
    together or not at all. Re-grading produces a full overwrite.
    """

    def __init__(self, min_grade: int = MIN_GRADE, max_grade: int = MAX_GRADE):
        self.min_grade = min_grade
        self.max_grade = max_grade

    def validate(self, value) -> int:
        # bool is an int subclass; True is not a grade
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(
                f"Grade must be an integer between {self.min_grade} and {self.max_grade}"
            )
        if value < self.min_grade or value > self.max_grade:
            raise ValidationError(
                f"Grade must be between {self.min_grade} and {self.max_grade}"
            )
        return value

    def grade(
        self,
        submission,
        value,
        feedback: str | None,
        grader_id: int,
        now: datetime,
    ) -> dict:
        grade = self.validate(value)
        if submission.is_graded:
            logger.info(
                "Re-grading submission %s (previous grade %s)", submission.id, submission.grade
            )
        return {
            "grade": grade,
            "feedback": feedback or "",
            "graded_by": grader_id,
            "graded_at": as_utc(now),
        }
