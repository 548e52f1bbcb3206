from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from coursework.core.config import MAX_UPLOAD_SIZE


class AssignmentCreate(BaseModel):
    title: str
    description: Optional[str] = None
    deadline: datetime
    classroom_id: str
    allowed_formats: Optional[list[str]] = None
    max_file_size: Optional[int] = Field(default=None, gt=0, le=MAX_UPLOAD_SIZE)


class AssignmentRead(BaseModel):
    id: int
    title: str
    description: Optional[str]
    deadline: datetime
    created_by: int
    classroom_id: str
    allowed_formats: Optional[str]
    max_file_size: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True
