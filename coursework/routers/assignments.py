import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from coursework.core.current_user import get_current_user
from coursework.core.deps import get_db
from coursework.core.permissions import require_lecturer
from coursework.models.assignment import Assignment
from coursework.models.user import User
from coursework.schemas.assignment import AssignmentCreate, AssignmentRead
from coursework.services.lateness import as_utc
from coursework.services.registry import AssignmentRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assignments")


@router.get("/{assignment_id}", response_model=AssignmentRead)
def get_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return AssignmentRegistry(db).get(assignment_id)


@router.post(
    "",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_assignment(
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    lecturer: User = Depends(require_lecturer),
):
    formats = None
    if payload.allowed_formats:
        formats = ",".join(f.strip().lower().lstrip(".") for f in payload.allowed_formats if f.strip())

    a = Assignment(
        title=payload.title,
        description=payload.description,
        deadline=as_utc(payload.deadline),
        created_by=lecturer.id,
        classroom_id=payload.classroom_id,
        allowed_formats=formats or None,
        max_file_size=payload.max_file_size,
    )
    db.add(a)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(a)
    logger.info("Lecturer %s created assignment %s", lecturer.id, a.id)
    return a
