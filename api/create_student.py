#!/usr/bin/env python3
"""
Register a student (or admin) profile, creating its batch when needed.

Usage:
    python create_student.py --email s@uni.lk --password secret --batch 24 --batch-code E/24 --index E/24/001
"""

import argparse
import logging
import sys

from unidash.auth.jwt_utils import hash_password
from unidash.config.database import SessionLocal, init_db
from unidash.models.profile import StudentProfile
from unidash.utils.db_utils import create_batch, get_batch_by_number

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create a student profile")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--batch", type=int, required=True, help="batch number, e.g. 24")
    parser.add_argument("--batch-code", help="display code, defaults to E/<batch>")
    parser.add_argument("--index", dest="index_number", help="university index number")
    parser.add_argument("--name", dest="full_name")
    parser.add_argument("--admin", action="store_true", help="grant the admin role")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.batch <= 0:
        logger.error("Batch number must be positive")
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        batch = get_batch_by_number(db, args.batch)
        if not batch:
            batch = create_batch(db, args.batch, args.batch_code or f"E/{args.batch}")
            logger.info(f"Created batch {batch.batch_number} ({batch.batch_code})")

        if db.query(StudentProfile).filter(StudentProfile.email == args.email).first():
            logger.error(f"A profile with email {args.email} already exists")
            sys.exit(1)

        profile = StudentProfile(
            email=args.email,
            password_hash=hash_password(args.password),
            full_name=args.full_name,
            index_number=args.index_number,
            role="admin" if args.admin else "student",
            batch_id=batch.id,
        )
        db.add(profile)
        db.commit()
        logger.info(f"Created {profile.role} {profile.email} in batch {batch.batch_number} (id={profile.id})")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create profile: {str(e)}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
