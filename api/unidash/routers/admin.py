import math
from typing import List
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..config.database import get_db
from ..core.batch_policy import BatchPolicyConfig, derive_academic_year
from ..core.errors import NotFoundError, ValidationError
from ..core.security import require_admin
from ..models.batch import Batch, BatchCreate, BatchResponse
from ..models.profile import StudentProfile
from ..utils.db_utils import advance_batch_semester, create_batch, list_batches

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _batch_response(batch: Batch) -> BatchResponse:
    semester = batch.current_semester or 1
    return BatchResponse(
        id=batch.id,
        batchNumber=batch.batch_number,
        batchCode=batch.batch_code,
        currentSemester=semester,
        currentYear=math.ceil(semester / 2),
        academicYear=derive_academic_year(batch.batch_number, BatchPolicyConfig.from_settings()),
    )


@router.get("/batches", response_model=List[BatchResponse])
async def get_batches(
    db: Session = Depends(get_db),
    admin: StudentProfile = Depends(require_admin),
):
    """All batches, newest first, with their current semester."""
    return [_batch_response(b) for b in list_batches(db)]


@router.post("/batches", response_model=BatchResponse, status_code=status.HTTP_201_CREATED)
async def add_batch(
    payload: BatchCreate,
    db: Session = Depends(get_db),
    admin: StudentProfile = Depends(require_admin),
):
    if payload.batch_number <= 0:
        raise ValidationError("Batch number must be positive")
    try:
        batch = create_batch(db, payload.batch_number, payload.batch_code, payload.current_semester)
    except ValueError as e:
        raise ValidationError(str(e))
    logger.info(f"Batch {batch.batch_number} ({batch.batch_code}) created by {admin.email}")
    return _batch_response(batch)


@router.post("/batches/{batch_id}/advance-semester", response_model=BatchResponse)
async def advance_semester(
    batch_id: int,
    db: Session = Depends(get_db),
    admin: StudentProfile = Depends(require_admin),
):
    batch = advance_batch_semester(db, batch_id)
    if not batch:
        raise NotFoundError("Batch not found")
    logger.info(f"Batch {batch.batch_number} advanced to semester {batch.current_semester} by {admin.email}")
    return _batch_response(batch)
