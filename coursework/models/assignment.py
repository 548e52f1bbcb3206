from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, func

from coursework.db.base_class import Base


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    deadline = Column(DateTime(timezone=True), nullable=False)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    classroom_id = Column(String(64), nullable=False, index=True)

    # Upload overrides; NULL means "use the global default"
    allowed_formats = Column(String(255), nullable=True)  # comma separated, e.g. "pdf,zip"
    max_file_size = Column(Integer, nullable=True)  # bytes

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def allowed_format_set(self) -> frozenset[str] | None:
        if not self.allowed_formats:
            return None
        return frozenset(
            f.strip().lower().lstrip(".") for f in self.allowed_formats.split(",") if f.strip()
        )
