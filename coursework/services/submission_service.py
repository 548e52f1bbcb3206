"""
Submission use cases.

Every operation follows the same order: resolve the target (NotFoundError),
authorize the caller, run domain logic, then persist through the store.
The service is built per request and holds no state between calls.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Sequence

from coursework.core.errors import NotFoundError, StorageError, ValidationError
from coursework.models.submission import Submission
from coursework.services.access import Action, Caller, authorize, list_scope
from coursework.services.attachments import (
    AttachmentManager,
    UploadConstraints,
    UploadedFile,
    describe,
)
from coursework.services.grading import GradingEngine
from coursework.services.lateness import as_utc, is_late
from coursework.services.registry import AssignmentRegistry, UserDirectory
from coursework.services.submission_store import SubmissionFilter, SubmissionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttachmentDownload:
    filename: str
    media_type: str
    content: bytes


def _compose(sub: Submission, find_assignment, find_user) -> dict:
    assignment = find_assignment(sub.assignment_id)
    student = find_user(sub.student_id)
    grader = find_user(sub.graded_by)

    return {
        "submission": sub,
        "assignment_title": assignment.title if assignment else None,
        "assignment_deadline": assignment.deadline if assignment else None,
        "assignment_classroom_id": assignment.classroom_id if assignment else None,
        "student_name": student.full_name if student else None,
        "student_email": student.email if student else None,
        "grader_name": grader.full_name if grader else None,
    }


class SubmissionService:
    def __init__(
        self,
        store: SubmissionStore,
        assignments: AssignmentRegistry,
        users: UserDirectory,
        attachments: AttachmentManager,
        grading: GradingEngine | None = None,
    ):
        self.store = store
        self.assignments = assignments
        self.users = users
        self.attachments = attachments
        self.grading = grading or GradingEngine()

    # Reads

    def list_submissions(
        self,
        caller: Caller,
        *,
        assignment_id: int | None = None,
        graded: bool | None = None,
        mine: bool = False,
    ) -> list[Submission]:
        authorize(Action.LIST, caller)
        scope = list_scope(caller, mine=mine)
        return self.store.list(
            SubmissionFilter(
                assignment_id=assignment_id,
                student_id=scope.student_id,
                graded=graded,
                assignment_owner_id=scope.assignment_owner_id,
            )
        )

    def get_submission(self, caller: Caller, submission_id: int) -> Submission:
        sub = self.store.get(submission_id)
        authorize(Action.READ, caller, sub)
        return sub

    def describe(self, sub: Submission) -> dict:
        """Submission plus the display fields of the records it references.

        Related records are fetched by id from their own registries; the
        submission row itself carries only ids.
        """
        return _compose(sub, self.assignments.find, self.users.find)

    def describe_all(self, subs: Sequence[Submission]) -> list[dict]:
        # one lookup per distinct assignment or user, not per submission
        find_assignment = lru_cache(maxsize=None)(self.assignments.find)
        find_user = lru_cache(maxsize=None)(self.users.find)
        return [_compose(sub, find_assignment, find_user) for sub in subs]

    # Writes

    def create_submission(
        self,
        caller: Caller,
        assignment_id: int,
        files: Sequence[UploadedFile],
        comment: str | None,
        now: datetime,
    ) -> Submission:
        authorize(Action.CREATE, caller)
        assignment = self.assignments.get(assignment_id)

        if not files:
            raise ValidationError("At least one file is required")
        self.attachments.validate(files, UploadConstraints.for_assignment(assignment))

        submitted_at = as_utc(now)
        late = is_late(submitted_at, assignment.deadline)

        stored = self.attachments.store(files)
        try:
            sub = self.store.create(
                assignment_id=assignment_id,
                student_id=caller.id,
                attachments=stored,
                comment=comment or "",
                submitted_at=submitted_at,
                is_late=late,
            )
        except Exception:
            # duplicate (ConflictError) or storage-layer failure: no orphaned blobs
            self.attachments.remove(stored)
            raise

        logger.info(
            "Student %s submitted assignment %s (submission %s, late=%s, %d file(s))",
            caller.id, assignment_id, sub.id, late, len(stored),
        )
        return sub

    def update_submission(
        self,
        caller: Caller,
        submission_id: int,
        *,
        files: Sequence[UploadedFile] | None = None,
        comment: str | None = None,
        now: datetime,
    ) -> Submission:
        sub = self.store.get(submission_id)
        authorize(Action.UPDATE, caller, sub)

        new_comment = comment if comment is not None else sub.comment

        if not files:
            updated = self.store.update(
                submission_id, {"comment": new_comment}, require_ungraded=True
            )
            logger.info("Submission %s comment updated by student %s", submission_id, caller.id)
            return updated

        assignment = self.assignments.get(sub.assignment_id)
        self.attachments.validate(files, UploadConstraints.for_assignment(assignment))

        submitted_at = as_utc(now)
        late = is_late(submitted_at, assignment.deadline)
        old = [describe(a) for a in sub.attachments]

        updated = self.attachments.replace(
            old,
            files,
            commit=lambda new: self.store.update(
                submission_id,
                {"comment": new_comment, "submitted_at": submitted_at, "is_late": late},
                attachments=new,
                require_ungraded=True,
            ),
        )
        logger.info(
            "Submission %s files replaced by student %s (late=%s, %d file(s))",
            submission_id, caller.id, late, len(files),
        )
        return updated

    def delete_submission(self, caller: Caller, submission_id: int) -> None:
        sub = self.store.get(submission_id)
        authorize(Action.DELETE, caller, sub)

        attachments = [describe(a) for a in sub.attachments]

        # record before blobs: a record that survives (e.g. graded meanwhile) keeps its files
        self.store.delete(submission_id, require_ungraded=True)

        failed = self.attachments.remove(attachments)
        if failed:
            logger.error(
                "Submission %s deleted but %d attachment blob(s) could not be removed: %s",
                submission_id, len(failed), ", ".join(a.storage_path for a in failed),
            )
        logger.info("Submission %s deleted by student %s", submission_id, caller.id)

    def grade_submission(
        self,
        caller: Caller,
        submission_id: int,
        value,
        feedback: str | None,
        now: datetime,
    ) -> Submission:
        sub = self.store.get(submission_id)
        authorize(Action.GRADE, caller, sub)

        fields = self.grading.grade(sub, value, feedback, caller.id, now)
        graded = self.store.update(submission_id, fields)

        logger.info("Submission %s graded %s by %s", submission_id, fields["grade"], caller.id)
        return graded

    # Downloads

    def _read(self, attachment) -> AttachmentDownload:
        try:
            content = self.attachments.open(describe(attachment))
        except FileNotFoundError:
            logger.warning("Attachment blob %s is missing", attachment.storage_path)
            raise NotFoundError("File not found")
        except OSError as exc:
            raise StorageError(f"Could not read file '{attachment.filename}'") from exc

        return AttachmentDownload(
            filename=attachment.filename,
            media_type=attachment.media_type,
            content=content,
        )

    def download_attachment(self, caller: Caller, submission_id: int, index: int) -> AttachmentDownload:
        sub = self.store.get(submission_id)
        authorize(Action.DOWNLOAD, caller, sub)

        if index < 0 or index >= len(sub.attachments):
            raise NotFoundError("File not found")
        return self._read(sub.attachments[index])

    def download_by_name(self, caller: Caller, stored_name: str) -> AttachmentDownload:
        sub = self.store.find_by_stored_name(stored_name)
        authorize(Action.DOWNLOAD, caller, sub)

        attachment = next(a for a in sub.attachments if a.stored_name == stored_name)
        return self._read(attachment)
