from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AttachmentRead(BaseModel):
    position: int
    filename: str
    stored_name: str
    media_type: str
    size: int

    class Config:
        from_attributes = True


class SubmissionRead(BaseModel):
    id: int
    assignment_id: int
    student_id: int
    comment: str
    attachments: list[AttachmentRead] = []
    submitted_at: datetime
    is_late: bool

    grade: Optional[int] = None
    feedback: Optional[str] = None
    graded_by: Optional[int] = None
    graded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubmissionDetail(SubmissionRead):
    assignment_title: Optional[str] = None
    assignment_deadline: Optional[datetime] = None
    assignment_classroom_id: Optional[str] = None
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    grader_name: Optional[str] = None


class SubmissionGradeUpdate(BaseModel):
    grade: int
    feedback: Optional[str] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
