#!/usr/bin/env python3
"""
Deployment Health Check
Checks if the deployment environment is ready to serve module content
"""

import os
import sys
import logging
import importlib
import psutil

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

REQUIRED_PACKAGES = {
    "fastapi": "fastapi",
    "uvicorn": "uvicorn",
    "sqlalchemy": "sqlalchemy",
    "pydantic": "pydantic",
    "python-dotenv": "dotenv",
    "python-jose": "jose",
    "bcrypt": "bcrypt",
}


def check_database(issues):
    """Open a connection and run a trivial query"""
    try:
        from sqlalchemy import text
        from unidash.config.database import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        issues.append(f"Database not reachable: {str(e)}")


def check_environment():
    """Check deployment environment"""
    issues = []

    for package, module_name in REQUIRED_PACKAGES.items():
        try:
            importlib.import_module(module_name)
        except ImportError:
            issues.append(f"Missing package: {package}")

    if os.getenv("ENV") == "production":
        for var in ["DATABASE_URL", "JWT_SECRET_KEY"]:
            if not os.getenv(var):
                issues.append(f"Missing environment variable: {var}")

    # Check memory
    memory = psutil.virtual_memory()
    if memory.percent > 95:
        issues.append(f"Critical memory usage: {memory.percent:.1f}%")

    # Check disk space
    disk = psutil.disk_usage('/')
    if disk.percent > 95:
        issues.append(f"Critical disk usage: {disk.percent:.1f}%")

    if not issues:
        check_database(issues)

    return issues


def main():
    """Main function"""
    issues = check_environment()

    if issues:
        logger.error("Health check failed:")
        for issue in issues:
            logger.error(f"  - {issue}")
        sys.exit(1)
    else:
        logger.info("Health check passed")
        sys.exit(0)


if __name__ == "__main__":
    main()
