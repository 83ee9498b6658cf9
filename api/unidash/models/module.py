from typing import Optional

from pydantic import BaseModel
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from ..config.database import Base


class Module(Base):
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, nullable=False, unique=True, index=True)  # e.g. "EE3201"
    name = Column(String, nullable=False)
    year = Column(Integer, nullable=False, index=True)  # nominal academic year
    semester = Column(Integer, nullable=True)
    degree = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ModuleCreate(BaseModel):
    code: str
    name: str
    year: int
    semester: Optional[int] = None
    degree: Optional[str] = None


class ModuleResponse(BaseModel):
    id: int
    code: str
    name: str
    year: int
    semester: Optional[int] = None
    degree: Optional[str] = None

    class Config:
        from_attributes = True
