import os
import sys
import logging
from pathlib import Path
from typing import List, Tuple
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Environment check
ENV = os.getenv("ENV", "development")
IS_PRODUCTION = ENV == "production"

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if IS_PRODUCTION else "DEBUG")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = os.getenv("LOG_FILE")

_handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
if LOG_FILE:
    if IS_PRODUCTION:
        from logging.handlers import RotatingFileHandler
        _handlers.append(RotatingFileHandler(LOG_FILE, maxBytes=10485760, backupCount=5, encoding="utf-8"))
    else:
        _handlers.append(logging.FileHandler(LOG_FILE, encoding="utf-8"))

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, handlers=_handlers)

# Reduce noise from database and HTTP libraries
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)
logging.getLogger('multipart').setLevel(logging.WARNING)
logging.getLogger('uvicorn').setLevel(logging.INFO)

logger = logging.getLogger(__name__)

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Database Settings
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'unidash.db'}")
SQLALCHEMY_ECHO = os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true"
AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "false" if IS_PRODUCTION else "true").lower() == "true"

# Security Settings
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not JWT_SECRET_KEY and IS_PRODUCTION:
    raise ValueError("JWT_SECRET_KEY must be set in production environment")
elif not JWT_SECRET_KEY:
    logger.warning("JWT_SECRET_KEY not found in environment variables. Using a default key for development only.")
    JWT_SECRET_KEY = "supersecretkey"  # Only for development

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))  # 24 hours default

# API Settings
API_TITLE = "Uni Dashboard Module Content API"
API_VERSION = "1.0.0"
API_DESCRIPTION = "Batch-versioned module content, past paper structures and continuous assessments"

# Batch policy
BATCH_LOOKBACK_WINDOW = int(os.getenv("BATCH_LOOKBACK_WINDOW", "3"))
ACADEMIC_YEAR_OFFSET = int(os.getenv("ACADEMIC_YEAR_OFFSET", "25"))
EDIT_YEAR_RULE = os.getenv("EDIT_YEAR_RULE", "at_least").lower()  # "at_least" or "exact"

if EDIT_YEAR_RULE not in ("at_least", "exact"):
    logger.warning(f"Invalid EDIT_YEAR_RULE: {EDIT_YEAR_RULE}. Defaulting to 'at_least'")
    EDIT_YEAR_RULE = "at_least"

# Continuous assessment rules (flagged, never enforced)
MAX_CA_ENTRIES = int(os.getenv("MAX_CA_ENTRIES", "2"))


def _parse_weights(raw: str) -> Tuple[int, ...]:
    weights = []
    for part in raw.replace(';', ',').split(','):
        part = part.strip()
        if not part:
            continue
        try:
            weights.append(int(part))
        except ValueError:
            logger.warning(f"Ignoring invalid CA weight in CA_ALLOWED_WEIGHTS: '{part}'")
    return tuple(weights)


CA_ALLOWED_WEIGHTS = _parse_weights(os.getenv("CA_ALLOWED_WEIGHTS", "20,30,40,50"))
CA_TYPES = ("written_exam", "presentation", "mcq", "practical", "video", "other")

# History pages
HISTORY_MODULE_LIMIT = int(os.getenv("HISTORY_MODULE_LIMIT", "50"))
HISTORY_STUDENT_LIMIT = int(os.getenv("HISTORY_STUDENT_LIMIT", "100"))

# CORS Configuration
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def clean_cors_origins(origins):
    """Clean and validate CORS origins, removing semicolons and invalid characters"""
    cleaned_origins = []
    for origin in origins:
        if isinstance(origin, str):
            cleaned = origin.strip().replace(';', '').replace(',', '').strip()
            if cleaned and (cleaned.startswith('http://') or cleaned.startswith('https://')):
                cleaned_origins.append(cleaned)
            else:
                logger.warning(f"Invalid CORS origin format: '{origin}' -> cleaned: '{cleaned}'")
        elif isinstance(origin, (list, tuple)):
            cleaned_origins.extend(clean_cors_origins(origin))

    # Remove duplicates while preserving order
    seen = set()
    unique_origins = []
    for origin in cleaned_origins:
        if origin not in seen:
            seen.add(origin)
            unique_origins.append(origin)
    return unique_origins


CORS_ORIGINS = clean_cors_origins(DEFAULT_CORS_ORIGINS)

ENV_CORS_ORIGINS = os.getenv("CORS_ORIGINS")
if ENV_CORS_ORIGINS:
    env_origins = [o for o in ENV_CORS_ORIGINS.replace(';', ',').replace(' ', '').split(',') if o]
    env_origins = clean_cors_origins(env_origins)
    if env_origins:
        CORS_ORIGINS = env_origins
        logger.info(f"CORS origins overridden from environment: {CORS_ORIGINS}")
    else:
        logger.warning("Environment CORS_ORIGINS parsed but no valid origins found, using defaults")

CORS_ALLOW_ALL = os.getenv("CORS_ALLOW_ALL", "false").lower() == "true"
if CORS_ALLOW_ALL:
    logger.warning("CORS_ALLOW_ALL is enabled - allowing all origins (NOT RECOMMENDED FOR PRODUCTION)")
    CORS_ORIGINS = ["*"]

logger.info(f"Starting application in {ENV} mode")
logger.debug(f"Batch lookback window: {BATCH_LOOKBACK_WINDOW}, academic year offset: {ACADEMIC_YEAR_OFFSET}")
