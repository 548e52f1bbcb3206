from sqlalchemy.orm import Session

from coursework.core.errors import NotFoundError
from coursework.models.assignment import Assignment
from coursework.models.user import User


class AssignmentRegistry:
    """Read-only access to assignment metadata (deadline, owner, upload overrides)."""

    def __init__(self, db: Session):
        self.db = db

    def find(self, assignment_id: int) -> Assignment | None:
        return self.db.get(Assignment, assignment_id)

    def get(self, assignment_id: int) -> Assignment:
        assignment = self.find(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        return assignment


class UserDirectory:
    def __init__(self, db: Session):
        self.db = db

    def find(self, user_id: int | None) -> User | None:
        if user_id is None:
            return None
        return self.db.get(User, user_id)
