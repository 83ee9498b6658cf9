from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config.database import get_db
from ..config.settings import HISTORY_MODULE_LIMIT
from ..core.batch_policy import BatchPolicyConfig, edit_permissions
from ..core.errors import NotFoundError, ValidationError
from ..core.security import StudentContext, get_current_student, get_current_user, require_admin
from ..models.content_version import ModuleContent
from ..models.continuous_assessment import ContinuousAssessmentInput
from ..models.module import ModuleCreate, ModuleResponse
from ..models.past_paper import PastPaperStructureSchema
from ..models.profile import StudentProfile
from ..services.content_service import ContentService
from ..utils.db_utils import create_module, get_module_by_id, get_module_history, list_modules

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/modules", tags=["modules"])


# Pydantic models for request bodies
class SaveContentRequest(BaseModel):
    batchNumber: Optional[int] = None
    contentJson: Optional[ModuleContent] = None
    pastPaperStructure: Optional[PastPaperStructureSchema] = None
    continuousAssessments: Optional[List[ContinuousAssessmentInput]] = None
    lecturerName: Optional[str] = None
    editReason: Optional[str] = None


class CloneRequest(BaseModel):
    fromBatch: Optional[int] = None
    toBatch: Optional[int] = None


def get_content_service(db: Session = Depends(get_db)) -> ContentService:
    return ContentService(db, BatchPolicyConfig.from_settings())


def _parse_batch_param(batch: Optional[str]) -> int:
    """Query-string batch number; absent, zero or non-numeric is rejected."""
    try:
        value = int(batch) if batch is not None else 0
    except ValueError:
        value = 0
    if value <= 0:
        raise ValidationError("Batch number required")
    return value


# ────────────────────────────────────────────────────────────────────
#  Catalogue
# ────────────────────────────────────────────────────────────────────
@router.get("", response_model=List[ModuleResponse])
async def get_modules(
    year: Optional[int] = Query(None),
    semester: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: Dict = Depends(get_current_user),
):
    """List modules, optionally for one academic year and semester."""
    return list_modules(db, year=year, semester=semester)


@router.post("", response_model=ModuleResponse, status_code=status.HTTP_201_CREATED)
async def add_module(
    payload: ModuleCreate,
    db: Session = Depends(get_db),
    admin: StudentProfile = Depends(require_admin),
):
    try:
        module = create_module(
            db,
            code=payload.code,
            name=payload.name,
            year=payload.year,
            semester=payload.semester,
            degree=payload.degree,
        )
    except ValueError as e:
        raise ValidationError(str(e))
    logger.info(f"Module {module.code} created by {admin.email}")
    return module


@router.get("/{module_id}")
async def get_module_detail(
    module_id: int,
    batch: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    student: StudentContext = Depends(get_current_student),
) -> Dict[str, Any]:
    """Module metadata with the caller's edit rights for the batch being viewed."""
    module = get_module_by_id(db, module_id)
    if not module:
        raise NotFoundError("Module not found")

    permissions = edit_permissions(
        student.batch_number,
        batch,
        module.year,
        BatchPolicyConfig.from_settings(),
    )
    data = ModuleResponse.model_validate(module).model_dump()
    data["viewingBatch"] = batch or student.batch_number
    data.update(permissions.to_response())
    return data


# ────────────────────────────────────────────────────────────────────
#  Batch-versioned content
# ────────────────────────────────────────────────────────────────────
@router.get("/{module_id}/batches")
async def get_module_batches(
    module_id: int,
    student: StudentContext = Depends(get_current_student),
    service: ContentService = Depends(get_content_service),
) -> Dict[str, Any]:
    """Batches whose version of this module the student may view."""
    return service.list_batch_summaries(module_id, student.batch_number)


@router.get("/{module_id}/content")
async def get_module_content(
    module_id: int,
    batch: Optional[str] = Query(None),
    user: Dict = Depends(get_current_user),
    service: ContentService = Depends(get_content_service),
) -> Dict[str, Any]:
    batch_number = _parse_batch_param(batch)
    snapshot = service.fetch_snapshot(module_id, batch_number)
    return snapshot.to_response()


@router.post("/{module_id}/content")
async def save_module_content(
    module_id: int,
    payload: SaveContentRequest,
    student: StudentContext = Depends(get_current_student),
    service: ContentService = Depends(get_content_service),
) -> Dict[str, Any]:
    """
    Save topics, past paper structure and/or CAs into the caller's own batch.

    Omitted parts are left as they are; a CA list, even an empty one,
    replaces the stored set.
    """
    if not payload.batchNumber:
        raise ValidationError("Batch number required")

    cas = None
    if payload.continuousAssessments is not None:
        cas = [ca.model_dump() for ca in payload.continuousAssessments]

    result = service.save_snapshot(
        module_id,
        payload.batchNumber,
        requester_own_batch=student.batch_number,
        actor_profile_id=student.profile_id,
        actor_index=student.index_number,
        content=payload.contentJson.model_dump(exclude_none=True) if payload.contentJson else None,
        past_paper=payload.pastPaperStructure.model_dump() if payload.pastPaperStructure else None,
        cas=cas,
        lecturer_name=payload.lecturerName,
        edit_reason=payload.editReason,
    )

    response: Dict[str, Any] = {"success": True, "steps": result.to_dict()}
    if cas is not None:
        response["caValidation"] = service.ca_report(cas)
    return response


@router.post("/{module_id}/clone")
async def clone_module_content(
    module_id: int,
    payload: CloneRequest,
    student: StudentContext = Depends(get_current_student),
    service: ContentService = Depends(get_content_service),
) -> Dict[str, Any]:
    """Copy a senior batch's version of this module into the caller's own batch."""
    if not payload.fromBatch or not payload.toBatch:
        raise ValidationError("Both fromBatch and toBatch are required")
    if payload.fromBatch < 0 or payload.toBatch < 0:
        raise ValidationError("Batch numbers must be positive")

    result = service.clone(
        module_id,
        payload.fromBatch,
        payload.toBatch,
        requester_own_batch=student.batch_number,
        actor_profile_id=student.profile_id,
        actor_index=student.index_number,
    )
    return result.to_response()


@router.get("/{module_id}/history")
async def get_module_edit_history(
    module_id: int,
    db: Session = Depends(get_db),
    user: Dict = Depends(get_current_user),
) -> Dict[str, Any]:
    module = get_module_by_id(db, module_id)
    if not module:
        raise NotFoundError("Module not found")

    entries = get_module_history(db, module_id, limit=HISTORY_MODULE_LIMIT)
    return {
        "moduleId": module.id,
        "moduleCode": module.code,
        "entries": [entry.to_dict() for entry in entries],
    }
