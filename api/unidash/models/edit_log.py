from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from ..config.database import Base


class EditLog(Base):
    """Append-only audit row written on every save and clone."""

    __tablename__ = "edit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)
    batch_number = Column(Integer, nullable=False, index=True)
    content_version_id = Column(Integer, ForeignKey("module_content_versions.id"), nullable=True)
    edited_by_index = Column(String, nullable=False, default="unknown")
    edit_reason = Column(Text, nullable=True)
    content_snapshot = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "module_id": self.module_id,
            "batch_number": self.batch_number,
            "content_version_id": self.content_version_id,
            "edited_by_index": self.edited_by_index,
            "edit_reason": self.edit_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
