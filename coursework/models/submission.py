from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from coursework.db.base_class import Base


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)

    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    comment = Column(Text, nullable=False, default="")

    submitted_at = Column(DateTime(timezone=True), nullable=False)
    # frozen at creation / content replacement, never recomputed
    is_late = Column(Boolean, nullable=False, default=False)

    # Grading fields (all NULL until graded, then all set)
    grade = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    graded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
        CheckConstraint(
            "(grade IS NULL AND feedback IS NULL AND graded_by IS NULL AND graded_at IS NULL)"
            " OR (grade IS NOT NULL AND feedback IS NOT NULL"
            " AND graded_by IS NOT NULL AND graded_at IS NOT NULL)",
            name="ck_submission_grade_fields",
        ),
        CheckConstraint("grade IS NULL OR (grade >= 0 AND grade <= 100)", name="ck_submission_grade_range"),
    )

    attachments = relationship(
        "SubmissionAttachment",
        back_populates="submission",
        order_by="SubmissionAttachment.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_graded(self) -> bool:
        return self.grade is not None


class SubmissionAttachment(Base):
    __tablename__ = "submission_attachments"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    filename = Column(String(255), nullable=False)  # original upload name
    stored_name = Column(String(255), nullable=False, unique=True, index=True)
    storage_path = Column(String(512), nullable=False)
    media_type = Column(String(255), nullable=False)
    size = Column(Integer, nullable=False)

    submission = relationship("Submission", back_populates="attachments")
