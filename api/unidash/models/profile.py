from typing import Optional

from pydantic import BaseModel
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..config.database import Base


class StudentProfile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    index_number = Column(String, nullable=True, index=True)  # university index, used in edit logs
    role = Column(String, nullable=False, default="student")  # "student" or "admin"
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    batch = relationship("Batch", lazy="joined")


class ProfileLogin(BaseModel):
    email: str
    password: str


class ProfileResponse(BaseModel):
    id: int
    email: str
    fullName: Optional[str] = None
    indexNumber: Optional[str] = None
    role: str
    batchNumber: Optional[int] = None
    batchCode: Optional[str] = None
    academicYear: Optional[int] = None


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    user: ProfileResponse
