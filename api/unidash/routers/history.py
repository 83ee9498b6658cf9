from typing import Any, Dict
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..config.database import get_db
from ..config.settings import HISTORY_STUDENT_LIMIT
from ..core.batch_policy import BatchPolicyConfig, derive_academic_year
from ..core.security import StudentContext, get_current_student
from ..utils.db_utils import get_batch_history, group_history_by_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("")
async def get_my_batch_history(
    db: Session = Depends(get_db),
    student: StudentContext = Depends(get_current_student),
) -> Dict[str, Any]:
    """Recent edits in the caller's own batch, for modules they are allowed to edit, grouped by day."""
    config = BatchPolicyConfig.from_settings()
    user_year = derive_academic_year(student.batch_number, config)

    if config.edit_year_rule == "exact":
        rows = get_batch_history(db, student.batch_number, limit=HISTORY_STUDENT_LIMIT, exact_module_year=user_year)
    else:
        rows = get_batch_history(db, student.batch_number, limit=HISTORY_STUDENT_LIMIT, max_module_year=user_year)

    logger.debug(f"History for batch {student.batch_number}: {len(rows)} entries")
    return {
        "userBatchNumber": student.batch_number,
        "userYear": user_year,
        "totalEntries": len(rows),
        "days": group_history_by_date(rows),
    }
