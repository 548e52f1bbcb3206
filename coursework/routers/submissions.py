import io
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from coursework.core.config import MAX_UPLOAD_SIZE
from coursework.core.current_user import get_current_caller
from coursework.core.deps import get_submission_service
from coursework.core.errors import ValidationError
from coursework.schemas.submission import (
    MessageResponse,
    SubmissionDetail,
    SubmissionGradeUpdate,
    SubmissionRead,
)
from coursework.services.access import Caller
from coursework.services.attachments import UploadedFile
from coursework.services.submission_service import AttachmentDownload, SubmissionService

router = APIRouter(prefix="/submissions")


def _too_large(filename: str) -> ValidationError:
    return ValidationError(f"File '{filename}' exceeds the maximum upload size of {MAX_UPLOAD_SIZE} bytes")


def _read_uploads(files: Optional[list[UploadFile]]) -> list[UploadedFile]:
    uploads = []
    for f in files or []:
        # browsers send an empty part when no file was picked
        if f is None or not f.filename:
            continue
        if f.size is not None and f.size > MAX_UPLOAD_SIZE:
            raise _too_large(f.filename)

        content = f.file.read(MAX_UPLOAD_SIZE + 1)
        if len(content) > MAX_UPLOAD_SIZE:
            raise _too_large(f.filename)
        uploads.append(UploadedFile(filename=f.filename, content=content, media_type=f.content_type))
    return uploads


def _detail(data: dict) -> SubmissionDetail:
    sub = data.pop("submission")
    return SubmissionDetail(**SubmissionRead.model_validate(sub).model_dump(), **data)


def _stream(download: AttachmentDownload) -> StreamingResponse:
    disposition = f"attachment; filename*=UTF-8''{quote(download.filename)}"
    if download.filename.isascii():
        disposition = f'attachment; filename="{download.filename}"'
    return StreamingResponse(
        io.BytesIO(download.content),
        media_type=download.media_type,
        headers={"Content-Disposition": disposition},
    )


@router.get("", response_model=list[SubmissionDetail])
def list_submissions(
    assignment: Optional[int] = Query(None),
    graded: Optional[bool] = Query(None),
    mine: bool = Query(False),
    caller: Caller = Depends(get_current_caller),
    service: SubmissionService = Depends(get_submission_service),
):
    subs = service.list_submissions(caller, assignment_id=assignment, graded=graded, mine=mine)
    return [_detail(data) for data in service.describe_all(subs)]


@router.get("/download/{filename}")
def download_by_filename(
    filename: str,
    caller: Caller = Depends(get_current_caller),
    service: SubmissionService = Depends(get_submission_service),
):
    return _stream(service.download_by_name(caller, filename))


@router.get("/{submission_id}", response_model=SubmissionDetail)
def get_submission(
    submission_id: int,
    caller: Caller = Depends(get_current_caller),
    service: SubmissionService = Depends(get_submission_service),
):
    sub = service.get_submission(caller, submission_id)
    return _detail(service.describe(sub))


@router.post(
    "",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_submission(
    assignment_id: int = Form(...),
    comment: Optional[str] = Form(None),
    files: Optional[list[UploadFile]] = File(None),
    caller: Caller = Depends(get_current_caller),
    service: SubmissionService = Depends(get_submission_service),
):
    return service.create_submission(
        caller,
        assignment_id,
        _read_uploads(files),
        comment,
        now=datetime.now(timezone.utc),
    )


@router.put("/{submission_id}", response_model=SubmissionRead)
def update_submission(
    submission_id: int,
    comment: Optional[str] = Form(None),
    files: Optional[list[UploadFile]] = File(None),
    caller: Caller = Depends(get_current_caller),
    service: SubmissionService = Depends(get_submission_service),
):
    return service.update_submission(
        caller,
        submission_id,
        files=_read_uploads(files),
        comment=comment,
        now=datetime.now(timezone.utc),
    )


@router.delete("/{submission_id}", response_model=MessageResponse)
def delete_submission(
    submission_id: int,
    caller: Caller = Depends(get_current_caller),
    service: SubmissionService = Depends(get_submission_service),
):
    service.delete_submission(caller, submission_id)
    return MessageResponse(message="Submission deleted successfully")


@router.put("/{submission_id}/grade", response_model=SubmissionRead)
def grade_submission(
    submission_id: int,
    payload: SubmissionGradeUpdate,
    caller: Caller = Depends(get_current_caller),
    service: SubmissionService = Depends(get_submission_service),
):
    return service.grade_submission(
        caller,
        submission_id,
        payload.grade,
        payload.feedback,
        now=datetime.now(timezone.utc),
    )


@router.get("/{submission_id}/files/{index}")
def download_attachment(
    submission_id: int,
    index: int,
    caller: Caller = Depends(get_current_caller),
    service: SubmissionService = Depends(get_submission_service),
):
    return _stream(service.download_attachment(caller, submission_id, index))
