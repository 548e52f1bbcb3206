"""
Authorization for the submission core.

| Action   | Student (owner)        | Student (non-owner) | Lecturer |
|----------|------------------------|---------------------|----------|
| READ     | allow                  | deny                | allow    |
| LIST     | own only               | own only            | all / own assignments |
| CREATE   | allow                  | n/a                 | deny     |
| UPDATE   | allow if ungraded      | deny                | deny     |
| DELETE   | allow if ungraded      | deny                | deny     |
| GRADE    | deny                   | deny                | allow    |
| DOWNLOAD | allow                  | deny                | allow    |

Existence is resolved by the caller before `authorize` runs, so a missing
record always reports NotFoundError rather than a permission detail.
"""

import enum
from dataclasses import dataclass

from coursework.core.config import GRADER_ROLES, ROLE_STUDENT
from coursework.core.errors import ForbiddenError, SubmissionLockedError


class Action(str, enum.Enum):
    READ = "read"
    LIST = "list"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    GRADE = "grade"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class Caller:
    id: int
    role: str

    @property
    def is_grader(self) -> bool:
        return self.role in GRADER_ROLES

    @property
    def is_student(self) -> bool:
        return self.role == ROLE_STUDENT


@dataclass(frozen=True)
class ListScope:
    student_id: int | None = None
    assignment_owner_id: int | None = None


def _is_owner(caller: Caller, submission) -> bool:
    return caller.is_student and submission.student_id == caller.id


def authorize(action: Action, caller: Caller, submission=None) -> None:
    if action is Action.LIST:
        return

    if action is Action.CREATE:
        if not caller.is_student:
            raise ForbiddenError("Only students can create submissions")
        return

    if action is Action.GRADE:
        if not caller.is_grader:
            raise ForbiddenError("Only lecturers can grade submissions")
        return

    if submission is None:
        raise ValueError(f"{action.value} requires a submission")

    if action in (Action.READ, Action.DOWNLOAD):
        if caller.is_grader or _is_owner(caller, submission):
            return
        if action is Action.DOWNLOAD:
            raise ForbiddenError("Not authorized to download this file")
        raise ForbiddenError("Not authorized to view this submission")

    if action in (Action.UPDATE, Action.DELETE):
        if not _is_owner(caller, submission):
            raise ForbiddenError(f"Not authorized to {action.value} this submission")
        if submission.is_graded:
            raise SubmissionLockedError(f"Cannot {action.value} a graded submission")
        return

    raise ValueError(f"Unknown action: {action!r}")


def list_scope(caller: Caller, *, mine: bool = False) -> ListScope:
    if caller.is_grader:
        return ListScope(assignment_owner_id=caller.id if mine else None)
    # students (and any unknown role) only ever see their own work
    return ListScope(student_id=caller.id)
