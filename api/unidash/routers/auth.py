from typing import Dict
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..auth.jwt_utils import create_access_token, verify_password
from ..config.database import get_db
from ..core.batch_policy import BatchPolicyConfig, derive_academic_year
from ..core.security import get_current_profile
from ..models.profile import LoginResponse, ProfileLogin, ProfileResponse, StudentProfile

logger = logging.getLogger(__name__)

# Rate limiting with in-memory storage
RATE_LIMIT_WINDOW = 300  # 5 minutes
MAX_LOGIN_ATTEMPTS = 5
login_attempts: Dict[str, Dict[float, int]] = {}

router = APIRouter(prefix="/api/auth", tags=["auth"])


def check_rate_limit(request: Request) -> None:
    """Check if the client has exceeded rate limits"""
    client_ip = request.client.host if request.client else "unknown"
    current_time = time.time()

    # Clean up old attempts
    if client_ip in login_attempts:
        login_attempts[client_ip] = {
            timestamp: count for timestamp, count in login_attempts[client_ip].items()
            if current_time - timestamp < RATE_LIMIT_WINDOW
        }

    recent_attempts = sum(login_attempts.get(client_ip, {}).values())
    if recent_attempts >= MAX_LOGIN_ATTEMPTS:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later."
        )

    attempts = login_attempts.setdefault(client_ip, {})
    attempts[current_time] = attempts.get(current_time, 0) + 1


def profile_response(profile: StudentProfile) -> ProfileResponse:
    batch = profile.batch
    return ProfileResponse(
        id=profile.id,
        email=profile.email,
        fullName=profile.full_name,
        indexNumber=profile.index_number,
        role=profile.role,
        batchNumber=batch.batch_number if batch else None,
        batchCode=batch.batch_code if batch else None,
        academicYear=derive_academic_year(batch.batch_number, BatchPolicyConfig.from_settings()) if batch else None,
    )


@router.post("/login", response_model=LoginResponse)
async def login(request: Request, login_data: ProfileLogin, db: Session = Depends(get_db)):
    """Exchange email and password for a bearer token"""
    check_rate_limit(request)

    profile = db.query(StudentProfile).filter(StudentProfile.email == login_data.email).first()
    if not profile or not verify_password(login_data.password, profile.password_hash):
        logger.warning(f"Failed login for {login_data.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"}
        )

    access_token = create_access_token(
        subject=str(profile.id),
        extra_claims={"email": profile.email, "role": profile.role},
    )

    # Clear rate limit on successful login
    if request.client and request.client.host in login_attempts:
        del login_attempts[request.client.host]

    logger.info(f"Successful login for {profile.email}")
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": profile_response(profile),
    }


@router.get("/me", response_model=ProfileResponse)
async def read_me(profile: StudentProfile = Depends(get_current_profile)):
    return profile_response(profile)
