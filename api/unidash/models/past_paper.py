from typing import List, Optional, Union

from pydantic import BaseModel
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.sql import func

from ..config.database import Base
from .content_version import utcnow


class PastPaperStructure(Base):
    __tablename__ = "past_paper_structures"
    __table_args__ = (
        UniqueConstraint("module_id", "batch_number", name="uq_past_paper_module_batch"),
    )

    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)
    batch_number = Column(Integer, nullable=False, index=True)
    structure_json = Column(JSON, nullable=False)
    created_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "module_id": self.module_id,
            "batch_number": self.batch_number,
            "structure_json": self.structure_json,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class EssayQuestion(BaseModel):
    topics: str = ""
    marks: int = 0


class PastPaperStructureSchema(BaseModel):
    """Exam layout of a module's final paper as remembered by a batch."""

    totalQuestions: int = 0
    duration: Union[str, int, None] = ""
    hasMcqs: bool = False
    mcqCount: int = 0
    mcqMarks: int = 0
    mcqNotes: Optional[str] = ""
    essayCount: int = 0
    essayMarks: int = 0
    essayQuestions: List[EssayQuestion] = []
    generalNotes: Optional[str] = ""
