import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from coursework.core.errors import ConflictError, NotFoundError, SubmissionLockedError
from coursework.models.assignment import Assignment
from coursework.models.submission import Submission, SubmissionAttachment
from coursework.services.attachments import AttachmentDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionFilter:
    assignment_id: int | None = None
    student_id: int | None = None
    graded: bool | None = None
    assignment_owner_id: int | None = None


def _attachment_rows(submission_id: int, attachments: Sequence[AttachmentDescriptor]):
    return [
        SubmissionAttachment(
            submission_id=submission_id,
            position=position,
            filename=a.filename,
            stored_name=a.stored_name,
            storage_path=a.storage_path,
            media_type=a.media_type,
            size=a.size,
        )
        for position, a in enumerate(attachments)
    ]


class SubmissionStore:
    """Durable CRUD over submission records.

    The one-submission-per-(assignment, student) rule is the database's
    unique constraint; this class only translates its violation into
    ConflictError. Mutations that must not touch graded records carry the
    `grade IS NULL` condition inside the statement itself.
    """

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return select(Submission).options(selectinload(Submission.attachments))

    def list(self, flt: SubmissionFilter | None = None) -> list[Submission]:
        flt = flt or SubmissionFilter()
        stmt = self._query()

        if flt.assignment_id is not None:
            stmt = stmt.where(Submission.assignment_id == flt.assignment_id)
        if flt.student_id is not None:
            stmt = stmt.where(Submission.student_id == flt.student_id)
        if flt.graded is True:
            stmt = stmt.where(Submission.grade.is_not(None))
        elif flt.graded is False:
            stmt = stmt.where(Submission.grade.is_(None))
        if flt.assignment_owner_id is not None:
            stmt = stmt.join(Assignment, Submission.assignment_id == Assignment.id).where(
                Assignment.created_by == flt.assignment_owner_id
            )

        return list(self.db.scalars(stmt.order_by(Submission.id.asc())).all())

    def get(self, submission_id: int) -> Submission:
        sub = self.db.scalars(self._query().where(Submission.id == submission_id)).first()
        if sub is None:
            raise NotFoundError("Submission not found")
        return sub

    def find_by_stored_name(self, stored_name: str) -> Submission:
        sub = self.db.scalars(
            self._query()
            .join(SubmissionAttachment, SubmissionAttachment.submission_id == Submission.id)
            .where(SubmissionAttachment.stored_name == stored_name)
        ).first()
        if sub is None:
            raise NotFoundError("File not found")
        return sub

    def create(
        self,
        *,
        assignment_id: int,
        student_id: int,
        attachments: Sequence[AttachmentDescriptor],
        comment: str,
        submitted_at: datetime,
        is_late: bool,
    ) -> Submission:
        sub = Submission(
            assignment_id=assignment_id,
            student_id=student_id,
            comment=comment,
            submitted_at=submitted_at,
            is_late=is_late,
        )
        self.db.add(sub)

        try:
            self.db.flush()
            self.db.add_all(_attachment_rows(sub.id, attachments))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(
                "You already have a submission for this assignment. "
                "Please update your existing submission instead."
            )
        except Exception:
            self.db.rollback()
            raise

        return self.get(sub.id)

    def _missing_or_locked(self, submission_id: int) -> Exception:
        exists = self.db.scalar(select(Submission.id).where(Submission.id == submission_id))
        if exists is None:
            return NotFoundError("Submission not found")
        return SubmissionLockedError("Submission has already been graded")

    def update(
        self,
        submission_id: int,
        values: dict,
        *,
        attachments: Sequence[AttachmentDescriptor] | None = None,
        require_ungraded: bool = False,
    ) -> Submission:
        """Apply `values` (and optionally a new attachment list) in one transaction."""
        if not values and attachments is None:
            raise ValueError("Nothing to update")

        stmt = update(Submission).where(Submission.id == submission_id)
        if require_ungraded:
            stmt = stmt.where(Submission.grade.is_(None))

        try:
            if values:
                result = self.db.execute(
                    stmt.values(**values).execution_options(synchronize_session=False)
                )
            else:
                # touch nothing, but still take the conditional row check
                result = self.db.execute(
                    stmt.values(id=Submission.id).execution_options(synchronize_session=False)
                )

            if result.rowcount != 1:
                self.db.rollback()
                raise self._missing_or_locked(submission_id)

            if attachments is not None:
                self.db.execute(
                    delete(SubmissionAttachment).where(SubmissionAttachment.submission_id == submission_id)
                )
                self.db.add_all(_attachment_rows(submission_id, attachments))

            self.db.commit()
        except (NotFoundError, SubmissionLockedError):
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.expire_all()
        return self.get(submission_id)

    def delete(self, submission_id: int, *, require_ungraded: bool = False) -> None:
        stmt = delete(Submission).where(Submission.id == submission_id)
        if require_ungraded:
            stmt = stmt.where(Submission.grade.is_(None))

        try:
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            if result.rowcount != 1:
                self.db.rollback()
                raise self._missing_or_locked(submission_id)

            self.db.execute(
                delete(SubmissionAttachment).where(SubmissionAttachment.submission_id == submission_id)
            )
            self.db.commit()
        except (NotFoundError, SubmissionLockedError):
            raise
        except Exception:
            self.db.rollback()
            raise

        # the deleted row may still sit in the identity map; its id can be reused
        self.db.expunge_all()
        logger.debug("Deleted submission record %s", submission_id)
