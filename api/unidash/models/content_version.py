from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from ..config.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModuleContentVersion(Base):
    __tablename__ = "module_content_versions"
    __table_args__ = (
        UniqueConstraint("module_id", "batch_number", name="uq_content_version_module_batch"),
    )

    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)
    batch_number = Column(Integer, nullable=False, index=True)
    content_json = Column(JSON, nullable=False)  # topics -> subTopics -> blocks
    lecturer_name = Column(String, nullable=True)
    cloned_from_batch = Column(Integer, nullable=True)  # provenance, set only by clone
    created_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "module_id": self.module_id,
            "batch_number": self.batch_number,
            "content_json": self.content_json,
            "lecturer_name": self.lecturer_name,
            "cloned_from_batch": self.cloned_from_batch,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ContentBlock(BaseModel):
    id: str
    type: Literal["text", "note", "link"] = "note"
    content: str = ""
    url: Optional[str] = None


class SubTopic(BaseModel):
    id: str
    title: str
    blocks: List[ContentBlock] = []


class Topic(BaseModel):
    id: str
    title: str
    subTopics: List[SubTopic] = []
    collapsed: Optional[bool] = None


class ModuleContent(BaseModel):
    topics: List[Topic] = []
    additionalNotes: Optional[str] = None
