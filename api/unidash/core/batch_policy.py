"""
Batch resolution and edit policy.

Pure functions only: callers fetch rows from the store and pass them in.
Every read and write entry point goes through this module so the lookback
window, the academic-year offset and the ownership rule live in one place.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import logging

from ..config import settings
from .errors import ForbiddenError

logger = logging.getLogger(__name__)

Timestamp = Union[datetime, str, None]


@dataclass(frozen=True)
class BatchPolicyConfig:
    lookback_window: int = 3
    academic_year_offset: int = 25
    edit_year_rule: str = "at_least"  # "at_least" or "exact"
    max_ca_entries: int = 2
    ca_allowed_weights: Tuple[int, ...] = (20, 30, 40, 50)
    ca_types: Tuple[str, ...] = ("written_exam", "presentation", "mcq", "practical", "video", "other")

    @classmethod
    def from_settings(cls) -> "BatchPolicyConfig":
        return cls(
            lookback_window=settings.BATCH_LOOKBACK_WINDOW,
            academic_year_offset=settings.ACADEMIC_YEAR_OFFSET,
            edit_year_rule=settings.EDIT_YEAR_RULE,
            max_ca_entries=settings.MAX_CA_ENTRIES,
            ca_allowed_weights=settings.CA_ALLOWED_WEIGHTS,
            ca_types=settings.CA_TYPES,
        )


DEFAULT_POLICY = BatchPolicyConfig()


def _config(config: Optional[BatchPolicyConfig]) -> BatchPolicyConfig:
    return config if config is not None else DEFAULT_POLICY


def _field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _timestamp_key(value: Timestamp) -> float:
    """Turn a stored timestamp into a sortable float; missing or unparseable sorts first."""
    if value is None:
        return 0.0
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable timestamp: {value!r}")
            return 0.0
    if value.tzinfo is None:
        # Stores without timezone support hand back naive UTC
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _latest(*values: Timestamp) -> Timestamp:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return max(present, key=_timestamp_key)


def _isoformat(value: Timestamp) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


# ────────────────────────────────────────────────────────────────────
#  Batch resolver
# ────────────────────────────────────────────────────────────────────
@dataclass
class BatchSummary:
    batch_number: int
    has_content: bool = False
    has_paper_structure: bool = False
    has_cas: bool = False
    content_updated_at: Timestamp = None
    paper_updated_at: Timestamp = None
    ca_updated_at: Timestamp = None
    lecturer_name: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return self.has_content or self.has_paper_structure or self.has_cas

    @property
    def updated_at(self) -> Timestamp:
        return _latest(self.content_updated_at, self.paper_updated_at, self.ca_updated_at)

    def to_response(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "batchNumber": self.batch_number,
            "hasContent": self.has_content,
            "hasPaperStructure": self.has_paper_structure,
            "hasCAs": self.has_cas,
        }
        optional = {
            "contentUpdatedAt": _isoformat(self.content_updated_at),
            "paperUpdatedAt": _isoformat(self.paper_updated_at),
            "caUpdatedAt": _isoformat(self.ca_updated_at),
            "lecturerName": self.lecturer_name,
            "updatedAt": _isoformat(self.updated_at),
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


def resolve_viewable_batches(
    student_batch_number: Optional[int],
    config: Optional[BatchPolicyConfig] = None,
) -> List[int]:
    """Own batch first, then up to ``lookback_window`` senior batches, all positive."""
    cfg = _config(config)
    if student_batch_number is None or isinstance(student_batch_number, bool):
        return []
    try:
        own = int(student_batch_number)
    except (TypeError, ValueError):
        return []
    if own <= 0:
        return []
    candidates = [own - offset for offset in range(cfg.lookback_window + 1)]
    return [b for b in candidates if b > 0]


def annotate_availability(
    viewable_batch_numbers: Sequence[int],
    content_rows: Iterable[Any],
    paper_rows: Iterable[Any],
    ca_rows: Iterable[Any],
) -> List[BatchSummary]:
    """
    Merge three independently fetched row sets into one summary per viewable batch.

    Rows need ``batch_number`` and ``updated_at`` (content rows may carry
    ``lecturer_name``); they may be mappings or objects. Rows for batch
    numbers outside the viewable set are ignored. The result follows the
    order of ``viewable_batch_numbers``.
    """
    summaries: Dict[int, BatchSummary] = {
        bn: BatchSummary(batch_number=bn) for bn in viewable_batch_numbers
    }

    for row in content_rows or []:
        summary = summaries.get(_field(row, "batch_number"))
        if summary is None:
            continue
        summary.has_content = True
        summary.content_updated_at = _latest(summary.content_updated_at, _field(row, "updated_at"))
        summary.lecturer_name = _field(row, "lecturer_name") or summary.lecturer_name

    for row in paper_rows or []:
        summary = summaries.get(_field(row, "batch_number"))
        if summary is None:
            continue
        summary.has_paper_structure = True
        summary.paper_updated_at = _latest(summary.paper_updated_at, _field(row, "updated_at"))

    for row in ca_rows or []:
        summary = summaries.get(_field(row, "batch_number"))
        if summary is None:
            continue
        summary.has_cas = True
        summary.ca_updated_at = _latest(summary.ca_updated_at, _field(row, "updated_at"))

    return [summaries[bn] for bn in viewable_batch_numbers]


def pick_default_batch(summaries: Sequence[BatchSummary], student_batch_number: int) -> int:
    """Most recently updated batch that has any data, else the student's own batch."""
    populated = [s for s in summaries if s.has_data]
    if not populated:
        return student_batch_number
    # max() keeps the first of equal keys, so ties go to the earliest summary
    newest = max(populated, key=lambda s: _timestamp_key(s.updated_at))
    return newest.batch_number


# ────────────────────────────────────────────────────────────────────
#  Edit permissions
# ────────────────────────────────────────────────────────────────────
def derive_academic_year(batch_number: int, config: Optional[BatchPolicyConfig] = None) -> int:
    return _config(config).academic_year_offset - batch_number


def can_edit_module(
    student_batch_number: int,
    module_year: int,
    config: Optional[BatchPolicyConfig] = None,
) -> bool:
    cfg = _config(config)
    user_year = derive_academic_year(student_batch_number, cfg)
    if cfg.edit_year_rule == "exact":
        return user_year == module_year
    return user_year >= module_year


@dataclass
class EditPermissions:
    user_year: int
    is_viewing_own_batch: bool
    can_edit: bool
    can_edit_topics: bool
    can_edit_assessments: bool

    def to_response(self) -> Dict[str, Any]:
        return {
            "userYear": self.user_year,
            "isViewingOwnBatch": self.is_viewing_own_batch,
            "canEdit": self.can_edit,
            "canEditTopics": self.can_edit_topics,
            "canEditAssessments": self.can_edit_assessments,
        }


def edit_permissions(
    student_batch_number: int,
    viewing_batch_number: Optional[int],
    module_year: int,
    config: Optional[BatchPolicyConfig] = None,
) -> EditPermissions:
    """
    Topics are editable only on the student's own batch; past paper and CA
    metadata follow the module-level gate whichever batch is being viewed.
    """
    cfg = _config(config)
    viewing = viewing_batch_number if viewing_batch_number else student_batch_number
    is_own = viewing == student_batch_number
    can_edit = can_edit_module(student_batch_number, module_year, cfg)
    return EditPermissions(
        user_year=derive_academic_year(student_batch_number, cfg),
        is_viewing_own_batch=is_own,
        can_edit=can_edit,
        can_edit_topics=can_edit and is_own,
        can_edit_assessments=can_edit,
    )


def ensure_own_batch(requester_batch_number: int, target_batch_number: int, action: str = "edit") -> None:
    """Single ownership guard run before every mutation."""
    if requester_batch_number != target_batch_number:
        logger.warning(
            f"Rejected {action}: requester batch {requester_batch_number} targeted batch {target_batch_number}"
        )
        if action == "clone":
            raise ForbiddenError("You can only clone to your own batch")
        raise ForbiddenError("You can only edit content for your own batch")


# ────────────────────────────────────────────────────────────────────
#  Continuous assessment checks
# ────────────────────────────────────────────────────────────────────
@dataclass
class CAValidationReport:
    total_ca_weight: int
    written_exam_weight: int
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.warnings

    def to_response(self) -> Dict[str, Any]:
        return {
            "totalCaWeight": self.total_ca_weight,
            "writtenExamWeight": self.written_exam_weight,
            "warnings": list(self.warnings),
            "valid": self.valid,
        }


def validate_ca_configuration(
    cas: Sequence[Any],
    config: Optional[BatchPolicyConfig] = None,
) -> CAValidationReport:
    """Flag CA setups the UI would warn about. Never raises."""
    cfg = _config(config)
    total = 0
    warnings: List[str] = []
    seen_numbers = set()

    for ca in cas:
        number = _field(ca, "caNumber") if _field(ca, "caNumber") is not None else _field(ca, "ca_number")
        ca_type = _field(ca, "type") or _field(ca, "ca_type")
        weight = _field(ca, "weight") if _field(ca, "weight") is not None else _field(ca, "ca_weight")
        weight = int(weight or 0)
        total += weight

        if number in seen_numbers:
            warnings.append(f"CA number {number} is used more than once")
        seen_numbers.add(number)
        if weight not in cfg.ca_allowed_weights:
            allowed = ", ".join(f"{w}%" for w in cfg.ca_allowed_weights)
            warnings.append(f"CA {number} weight {weight}% is not one of {allowed}")
        if ca_type not in cfg.ca_types:
            warnings.append(f"CA {number} has unknown type '{ca_type}'")

    if len(cas) > cfg.max_ca_entries:
        warnings.append(f"At most {cfg.max_ca_entries} continuous assessments are allowed per module")

    written = 100 - total
    if written < 0:
        warnings.append("Total CA weight exceeds 100%")

    return CAValidationReport(total_ca_weight=total, written_exam_weight=written, warnings=warnings)
