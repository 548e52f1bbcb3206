from fastapi import Depends
from sqlalchemy.orm import Session

from coursework.core.config import UPLOAD_ROOT
from coursework.db.session import SessionLocal
from coursework.services.attachments import AttachmentManager
from coursework.services.registry import AssignmentRegistry, UserDirectory
from coursework.services.submission_service import SubmissionService
from coursework.services.submission_store import SubmissionStore
from coursework.storage.blobs import BlobStore, LocalBlobStore


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_blob_store() -> BlobStore:
    return LocalBlobStore(UPLOAD_ROOT)


def get_submission_service(
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
) -> SubmissionService:
    return SubmissionService(
        store=SubmissionStore(db),
        assignments=AssignmentRegistry(db),
        users=UserDirectory(db),
        attachments=AttachmentManager(blobs),
    )
