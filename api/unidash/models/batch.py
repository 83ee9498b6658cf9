from typing import Optional

from pydantic import BaseModel
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from ..config.database import Base


class Batch(Base):
    __tablename__ = "batches"

    id = Column(Integer, primary_key=True, index=True)
    batch_number = Column(Integer, nullable=False, unique=True, index=True)  # seniority key, never reused
    batch_code = Column(String, nullable=False)  # e.g. "E/21"
    current_semester = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class BatchCreate(BaseModel):
    batch_number: int
    batch_code: str
    current_semester: int = 1


class BatchResponse(BaseModel):
    id: int
    batchNumber: int
    batchCode: str
    currentSemester: int
    currentYear: int
    academicYear: Optional[int] = None
