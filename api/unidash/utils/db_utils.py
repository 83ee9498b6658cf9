from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.batch import Batch
from ..models.edit_log import EditLog
from ..models.module import Module


# ────────────────────────────────────────────────────────────────────
#  Modules
# ────────────────────────────────────────────────────────────────────
def list_modules(db: Session, year: Optional[int] = None, semester: Optional[int] = None) -> List[Module]:
    """List modules ordered by code, optionally filtered by year and semester"""
    query = db.query(Module)
    if year is not None:
        query = query.filter(Module.year == year)
    if semester is not None:
        query = query.filter(Module.semester == semester)
    return query.order_by(Module.code.asc()).all()


def get_module_by_id(db: Session, module_id: int) -> Optional[Module]:
    return db.query(Module).filter(Module.id == module_id).first()


def create_module(
    db: Session,
    code: str,
    name: str,
    year: int,
    semester: Optional[int] = None,
    degree: Optional[str] = None,
) -> Module:
    """Create a module; raises ValueError when the code is taken"""
    try:
        module = Module(code=code, name=name, year=year, semester=semester, degree=degree)
        db.add(module)
        db.commit()
        db.refresh(module)
        return module
    except IntegrityError:
        db.rollback()
        raise ValueError(f"Module code {code} already exists")
    except Exception as e:
        db.rollback()
        raise e


# ────────────────────────────────────────────────────────────────────
#  Batches
# ────────────────────────────────────────────────────────────────────
def list_batches(db: Session) -> List[Batch]:
    """All batches, newest first"""
    return db.query(Batch).order_by(Batch.batch_number.desc()).all()


def get_batch_by_number(db: Session, batch_number: int) -> Optional[Batch]:
    return db.query(Batch).filter(Batch.batch_number == batch_number).first()


def create_batch(db: Session, batch_number: int, batch_code: str, current_semester: int = 1) -> Batch:
    """Create a batch; raises ValueError when the number is taken"""
    try:
        batch = Batch(batch_number=batch_number, batch_code=batch_code, current_semester=current_semester)
        db.add(batch)
        db.commit()
        db.refresh(batch)
        return batch
    except IntegrityError:
        db.rollback()
        raise ValueError(f"Batch {batch_number} already exists")
    except Exception as e:
        db.rollback()
        raise e


def advance_batch_semester(db: Session, batch_id: int) -> Optional[Batch]:
    """Move a batch to its next semester; None when the batch does not exist"""
    try:
        batch = db.query(Batch).filter(Batch.id == batch_id).first()
        if not batch:
            return None
        batch.current_semester = (batch.current_semester or 0) + 1
        db.commit()
        db.refresh(batch)
        return batch
    except Exception as e:
        db.rollback()
        raise e


# ────────────────────────────────────────────────────────────────────
#  Edit history
# ────────────────────────────────────────────────────────────────────
def get_module_history(db: Session, module_id: int, limit: int = 50) -> List[EditLog]:
    """Latest edit log entries of a module, newest first"""
    return db.query(EditLog).filter(
        EditLog.module_id == module_id
    ).order_by(EditLog.created_at.desc(), EditLog.id.desc()).limit(limit).all()


def get_batch_history(
    db: Session,
    batch_number: int,
    limit: int = 100,
    max_module_year: Optional[int] = None,
    exact_module_year: Optional[int] = None,
) -> List[Tuple[EditLog, Module]]:
    """Latest edits written into one batch, joined with their module"""
    query = db.query(EditLog, Module).join(Module, Module.id == EditLog.module_id).filter(
        EditLog.batch_number == batch_number
    )
    if exact_module_year is not None:
        query = query.filter(Module.year == exact_module_year)
    elif max_module_year is not None:
        query = query.filter(Module.year <= max_module_year)
    return query.order_by(EditLog.created_at.desc(), EditLog.id.desc()).limit(limit).all()


def group_history_by_date(rows: List[Tuple[EditLog, Module]]) -> List[Dict[str, Any]]:
    """Group (entry, module) rows by calendar date, keeping their order"""
    grouped: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    for entry, module in rows:
        day = entry.created_at.date().isoformat() if entry.created_at else "unknown"
        item = entry.to_dict()
        item["module_code"] = module.code
        item["module_name"] = module.name
        grouped.setdefault(day, []).append(item)
    return [{"date": day, "entries": entries} for day, entries in grouped.items()]
