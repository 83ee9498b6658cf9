from dataclasses import asdict
from datetime import datetime
import logging
import platform

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..config.database import get_db
from ..config.settings import API_VERSION, ENV
from ..core.batch_policy import BatchPolicyConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check():
    """Liveness probe"""
    return {
        "status": "healthy",
        "version": API_VERSION,
        "timestamp": datetime.now().isoformat(),
    }


@router.get("/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """Check database connectivity and report the active batch policy"""
    try:
        db.execute(text("SELECT 1"))
        database = {"status": "connected"}
    except Exception as e:
        logger.error(f"Health check database error: {str(e)}")
        database = {"status": "error", "error": str(e)}

    healthy = database["status"] == "connected"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "environment": ENV,
        "version": API_VERSION,
        "timestamp": datetime.now().isoformat(),
        "system": {
            "platform": platform.system(),
            "python_version": platform.python_version(),
        },
        "database": database,
        "batch_policy": asdict(BatchPolicyConfig.from_settings()),
    }
    return JSONResponse(content=body, status_code=200 if healthy else 503)
