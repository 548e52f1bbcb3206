import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# DEV default secret; set COURSEWORK_SECRET_KEY in production.
SECRET_KEY = os.getenv("COURSEWORK_SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE = timedelta(minutes=60)

DATABASE_URL = os.getenv("COURSEWORK_DATABASE_URL", f"sqlite:///{BASE_DIR}/coursework.db")

# Roles
ROLE_STUDENT = "student"
ROLE_LECTURER = "lecturer"
GRADER_ROLES = frozenset({ROLE_LECTURER})

# Grading
MIN_GRADE = 0
MAX_GRADE = 100

# Uploads
UPLOAD_ROOT = Path(os.getenv("COURSEWORK_UPLOAD_ROOT", BASE_DIR / "uploads"))
SUBMISSION_CATEGORY = "submissions"  # kept apart from e.g. "assignments"

DEFAULT_ALLOWED_FORMATS = frozenset({"pdf", "doc", "docx", "txt"})
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
MAX_UPLOAD_SIZE = 50 * 1024 * 1024  # no assignment may allow more per file

# extension -> accepted declared media types
MEDIA_TYPES = {
    "pdf": ("application/pdf",),
    "doc": ("application/msword",),
    "docx": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ),
    "txt": ("text/plain",),
}
GENERIC_MEDIA_TYPE = "application/octet-stream"
