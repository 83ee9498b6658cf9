from pydantic import BaseModel
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from ..config.database import Base
from .content_version import utcnow


class ContinuousAssessment(Base):
    __tablename__ = "continuous_assessments"
    __table_args__ = {"sqlite_autoincrement": True}  # ids of replaced sets are never reused

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)
    batch_number = Column(Integer, nullable=False, index=True)
    ca_number = Column(Integer, nullable=False)
    ca_type = Column(String, nullable=False)  # written_exam, presentation, mcq, practical, video, other
    ca_weight = Column(Integer, nullable=False)  # percentage
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "module_id": self.module_id,
            "batch_number": self.batch_number,
            "ca_number": self.ca_number,
            "ca_type": self.ca_type,
            "ca_weight": self.ca_weight,
            "description": self.description,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ContinuousAssessmentInput(BaseModel):
    caNumber: int
    type: str
    weight: int
    description: str = ""
