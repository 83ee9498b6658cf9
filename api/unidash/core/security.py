from dataclasses import dataclass
from typing import Dict, Optional
import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.jwt_utils import verify_token
from ..config.database import get_db
from ..models.batch import Batch
from ..models.profile import StudentProfile
from .errors import (
    ForbiddenError,
    ProfileIncompleteError,
    StoreFailureError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)

_scheme = HTTPBearer(auto_error=False)


@dataclass
class StudentContext:
    """The authenticated student and the batch they belong to."""

    profile: StudentProfile
    batch_id: int
    batch_number: int
    batch_code: str

    @property
    def profile_id(self) -> int:
        return self.profile.id

    @property
    def index_number(self) -> str:
        return self.profile.index_number or "unknown"


def get_current_user(
    cred: Optional[HTTPAuthorizationCredentials] = Depends(_scheme),
) -> Dict:
    """Decode the bearer token; 401 when it is absent or invalid."""
    if cred is None or not cred.credentials:
        raise UnauthenticatedError()
    return verify_token(cred.credentials)


def get_current_profile(
    payload: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StudentProfile:
    try:
        profile_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise UnauthenticatedError("Invalid token subject")

    try:
        profile = db.query(StudentProfile).filter(StudentProfile.id == profile_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Profile lookup failed for {profile_id}: {str(e)}")
        raise StoreFailureError(f"Profile error: {str(e)}")

    if not profile:
        logger.warning(f"Token subject {profile_id} has no profile")
        raise ProfileIncompleteError("Profile not found")
    return profile


def get_current_student(
    profile: StudentProfile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> StudentContext:
    """Resolve the caller's own batch number from their profile."""
    if not profile.batch_id:
        raise ProfileIncompleteError()

    batch = profile.batch
    if batch is None:
        batch = db.query(Batch).filter(Batch.id == profile.batch_id).first()
    if batch is None or not batch.batch_number:
        logger.error(f"Profile {profile.id} has batch_id={profile.batch_id} but the batch row is missing")
        raise StoreFailureError(
            "Batch data not found. User has batch_id but join failed.",
            extra={"batch_id": profile.batch_id},
        )

    return StudentContext(
        profile=profile,
        batch_id=batch.id,
        batch_number=batch.batch_number,
        batch_code=batch.batch_code,
    )


def require_admin(profile: StudentProfile = Depends(get_current_profile)) -> StudentProfile:
    if profile.role != "admin":
        raise ForbiddenError("Admin access required")
    return profile
