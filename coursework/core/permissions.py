from fastapi import Depends

from coursework.core.config import GRADER_ROLES
from coursework.core.current_user import get_current_user
from coursework.core.errors import ForbiddenError
from coursework.models.user import User


def require_lecturer(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role not in GRADER_ROLES:
        raise ForbiddenError("Lecturer role required")
    return current_user
