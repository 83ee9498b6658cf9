from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.batch_policy import (
    BatchPolicyConfig,
    BatchSummary,
    annotate_availability,
    ensure_own_batch,
    pick_default_batch,
    resolve_viewable_batches,
    validate_ca_configuration,
)
from ..core.errors import NotFoundError, StoreFailureError, ValidationError
from ..models.content_version import ModuleContentVersion
from ..models.continuous_assessment import ContinuousAssessment
from ..models.edit_log import EditLog
from ..models.module import Module
from ..models.past_paper import PastPaperStructure

logger = logging.getLogger(__name__)

DEFAULT_SAVE_REASON = "Updated module content"


class StepOutcome(str, Enum):
    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


@dataclass
class SnapshotWriteResult:
    """Per sub-entity outcome of a save or clone."""

    content: StepOutcome = StepOutcome.SKIPPED
    paper_structure: StepOutcome = StepOutcome.SKIPPED
    continuous_assessments: StepOutcome = StepOutcome.SKIPPED
    ca_count: int = 0
    edit_log_id: Optional[int] = None

    @property
    def wrote_anything(self) -> bool:
        return StepOutcome.WRITTEN in (self.content, self.paper_structure, self.continuous_assessments)

    def mark(self, step: str, outcome: StepOutcome) -> None:
        setattr(self, step, outcome)

    def roll_back(self) -> None:
        for step in ("content", "paper_structure", "continuous_assessments"):
            if getattr(self, step) == StepOutcome.WRITTEN:
                setattr(self, step, StepOutcome.ROLLED_BACK)
        self.edit_log_id = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content.value,
            "pastPaperStructure": self.paper_structure.value,
            "continuousAssessments": self.continuous_assessments.value,
            "caCount": self.ca_count,
        }


@dataclass
class CloneResult(SnapshotWriteResult):
    from_batch: int = 0
    to_batch: int = 0

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "clonedFrom": self.from_batch,
            "clonedTo": self.to_batch,
            "clonedContent": self.content == StepOutcome.WRITTEN,
            "clonedPaper": self.paper_structure == StepOutcome.WRITTEN,
            "clonedCAs": self.ca_count,
            "steps": self.to_dict(),
        }


@dataclass
class Snapshot:
    batch_number: int
    content: Optional[ModuleContentVersion] = None
    paper_structure: Optional[PastPaperStructure] = None
    continuous_assessments: List[ContinuousAssessment] = field(default_factory=list)

    @property
    def has_content(self) -> bool:
        return self.content is not None

    @property
    def has_paper_structure(self) -> bool:
        return self.paper_structure is not None

    @property
    def has_cas(self) -> bool:
        return len(self.continuous_assessments) > 0

    def to_response(self) -> Dict[str, Any]:
        return {
            "batchNumber": self.batch_number,
            "content": self.content.to_dict() if self.content else None,
            "pastPaperStructure": self.paper_structure.to_dict() if self.paper_structure else None,
            "continuousAssessments": [ca.to_dict() for ca in self.continuous_assessments],
            "hasContent": self.has_content,
            "hasPaperStructure": self.has_paper_structure,
            "hasCAs": self.has_cas,
        }


class ContentService:
    def __init__(self, db: Session, config: Optional[BatchPolicyConfig] = None):
        self.db = db
        self.config = config or BatchPolicyConfig.from_settings()

    # ────────────────────────────────────────────────────────────────
    #  Reads
    # ────────────────────────────────────────────────────────────────
    def get_module(self, module_id: int) -> Module:
        module = self.db.query(Module).filter(Module.id == module_id).first()
        if not module:
            raise NotFoundError("Module not found")
        return module

    def list_batch_summaries(self, module_id: int, student_batch_number: int) -> Dict[str, Any]:
        """Availability of every batch the student may view, plus the default selection."""
        viewable = resolve_viewable_batches(student_batch_number, self.config)
        if not viewable:
            return {
                "userBatchNumber": student_batch_number,
                "availableBatches": [],
                "defaultBatch": student_batch_number,
            }

        try:
            content_rows = self.db.query(ModuleContentVersion).filter(
                ModuleContentVersion.module_id == module_id,
                ModuleContentVersion.batch_number.in_(viewable),
            ).all()
            paper_rows = self.db.query(PastPaperStructure).filter(
                PastPaperStructure.module_id == module_id,
                PastPaperStructure.batch_number.in_(viewable),
            ).all()
            ca_rows = self.db.query(ContinuousAssessment).filter(
                ContinuousAssessment.module_id == module_id,
                ContinuousAssessment.batch_number.in_(viewable),
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching batch data for module {module_id}: {str(e)}")
            raise StoreFailureError(str(e))

        summaries: List[BatchSummary] = annotate_availability(viewable, content_rows, paper_rows, ca_rows)
        default_batch = pick_default_batch(summaries, student_batch_number)
        logger.debug(f"Module {module_id}: viewable={viewable}, default={default_batch}")

        return {
            "userBatchNumber": student_batch_number,
            "availableBatches": [s.to_response() for s in summaries],
            "defaultBatch": default_batch,
        }

    def fetch_snapshot(self, module_id: int, batch_number: int) -> Snapshot:
        try:
            content = self._content_row(module_id, batch_number)
            paper = self._paper_row(module_id, batch_number)
            cas = self._ca_rows(module_id, batch_number)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching batch content for module {module_id} batch {batch_number}: {str(e)}")
            raise StoreFailureError(str(e))
        return Snapshot(
            batch_number=batch_number,
            content=content,
            paper_structure=paper,
            continuous_assessments=cas,
        )

    # ────────────────────────────────────────────────────────────────
    #  Writes
    # ────────────────────────────────────────────────────────────────
    def save_snapshot(
        self,
        module_id: int,
        batch_number: int,
        requester_own_batch: int,
        actor_profile_id: Optional[int] = None,
        actor_index: Optional[str] = None,
        content: Optional[Dict[str, Any]] = None,
        past_paper: Optional[Dict[str, Any]] = None,
        cas: Optional[Sequence[Dict[str, Any]]] = None,
        lecturer_name: Optional[str] = None,
        edit_reason: Optional[str] = None,
    ) -> SnapshotWriteResult:
        """
        Write any supplied parts of a snapshot into the requester's own batch.

        Content and past paper structure are full-replace upserts; a supplied
        CA list, even an empty one, replaces the whole CA set. All writes and
        the edit log entry commit together or not at all.
        """
        ensure_own_batch(requester_own_batch, batch_number, action="edit")
        self.get_module(module_id)

        result = SnapshotWriteResult()
        step = "content"
        try:
            content_row = None
            if content is not None:
                content_row = self._upsert_content(
                    module_id, batch_number, content, lecturer_name, actor_profile_id
                )
                result.mark("content", StepOutcome.WRITTEN)

            step = "paper_structure"
            if past_paper is not None:
                self._upsert_paper(module_id, batch_number, past_paper, actor_profile_id)
                result.mark("paper_structure", StepOutcome.WRITTEN)

            step = "continuous_assessments"
            if cas is not None:
                result.ca_count = self._replace_cas(module_id, batch_number, cas)
                result.mark("continuous_assessments", StepOutcome.WRITTEN)

            step = "edit_log"
            if result.wrote_anything:
                if content_row is None:
                    content_row = self._content_row(module_id, batch_number)
                entry = self._append_edit_log(
                    module_id,
                    batch_number,
                    content_row,
                    actor_index,
                    edit_reason or DEFAULT_SAVE_REASON,
                )

                self.db.commit()
                result.edit_log_id = entry.id
        except SQLAlchemyError as e:
            self._abort(result, step, e)

        logger.info(
            f"Saved module {module_id} batch {batch_number} by {actor_index or 'unknown'}: {result.to_dict()}"
        )
        return result

    def clone(
        self,
        module_id: int,
        from_batch: int,
        to_batch: int,
        requester_own_batch: int,
        actor_profile_id: Optional[int] = None,
        actor_index: Optional[str] = None,
    ) -> CloneResult:
        """
        Copy every sub-entity present at ``from_batch`` into ``to_batch``.

        Sub-entities missing at the source leave the destination untouched.
        Existing destination rows are overwritten.
        """
        ensure_own_batch(requester_own_batch, to_batch, action="clone")
        if from_batch == to_batch:
            raise ValidationError("Source and destination batch must differ")
        self.get_module(module_id)

        source = self.fetch_snapshot(module_id, from_batch)
        result = CloneResult(from_batch=from_batch, to_batch=to_batch)
        step = "content"
        try:
            content_row = None
            if source.content is not None:
                existing = self._content_row(module_id, to_batch)
                if existing is not None:
                    origin = (
                        f"cloned from batch {existing.cloned_from_batch}"
                        if existing.cloned_from_batch
                        else "authored in place"
                    )
                    logger.warning(
                        f"Clone overwrites content of module {module_id} batch {to_batch} "
                        f"({origin}) with batch {from_batch}"
                    )
                content_row = self._upsert_content(
                    module_id,
                    to_batch,
                    source.content.content_json,
                    source.content.lecturer_name,
                    actor_profile_id,
                    cloned_from_batch=from_batch,
                    replace_lecturer=True,
                )
                result.mark("content", StepOutcome.WRITTEN)

            step = "paper_structure"
            if source.paper_structure is not None:
                self._upsert_paper(module_id, to_batch, source.paper_structure.structure_json, actor_profile_id)
                result.mark("paper_structure", StepOutcome.WRITTEN)

            step = "continuous_assessments"
            if source.has_cas:
                copies = [
                    {
                        "caNumber": ca.ca_number,
                        "type": ca.ca_type,
                        "weight": ca.ca_weight,
                        "description": ca.description,
                    }
                    for ca in source.continuous_assessments
                ]
                result.ca_count = self._replace_cas(module_id, to_batch, copies)
                result.mark("continuous_assessments", StepOutcome.WRITTEN)

            step = "edit_log"
            if result.wrote_anything:
                if content_row is None:
                    content_row = self._content_row(module_id, to_batch)
                entry = self._append_edit_log(
                    module_id,
                    to_batch,
                    content_row,
                    actor_index,
                    f"Cloned from batch {from_batch}",
                )

                self.db.commit()
                result.edit_log_id = entry.id
            else:
                logger.info(f"Batch {from_batch} of module {module_id} has nothing to clone")
        except SQLAlchemyError as e:
            self._abort(result, step, e)

        logger.info(f"Cloned module {module_id} from batch {from_batch} to {to_batch}: {result.to_dict()}")
        return result

    def ca_report(self, cas: Sequence[Any]) -> Dict[str, Any]:
        report = validate_ca_configuration(cas, self.config)
        for warning in report.warnings:
            logger.warning(f"CA configuration: {warning}")
        return report.to_response()

    # ────────────────────────────────────────────────────────────────
    #  Helpers
    # ────────────────────────────────────────────────────────────────
    def _content_row(self, module_id: int, batch_number: int) -> Optional[ModuleContentVersion]:
        return self.db.query(ModuleContentVersion).filter(
            ModuleContentVersion.module_id == module_id,
            ModuleContentVersion.batch_number == batch_number,
        ).first()

    def _paper_row(self, module_id: int, batch_number: int) -> Optional[PastPaperStructure]:
        return self.db.query(PastPaperStructure).filter(
            PastPaperStructure.module_id == module_id,
            PastPaperStructure.batch_number == batch_number,
        ).first()

    def _ca_rows(self, module_id: int, batch_number: int) -> List[ContinuousAssessment]:
        return self.db.query(ContinuousAssessment).filter(
            ContinuousAssessment.module_id == module_id,
            ContinuousAssessment.batch_number == batch_number,
        ).order_by(ContinuousAssessment.ca_number.asc()).all()

    def _upsert_content(
        self,
        module_id: int,
        batch_number: int,
        content_json: Dict[str, Any],
        lecturer_name: Optional[str],
        actor_profile_id: Optional[int],
        cloned_from_batch: Optional[int] = None,
        replace_lecturer: bool = False,
    ) -> ModuleContentVersion:
        """Full-replace upsert; an omitted lecturer name is kept unless ``replace_lecturer``."""
        row = self._content_row(module_id, batch_number)
        if row is None:
            row = ModuleContentVersion(
                module_id=module_id,
                batch_number=batch_number,
                created_by=actor_profile_id,
            )
            self.db.add(row)
        row.content_json = content_json
        row.updated_by = actor_profile_id
        if replace_lecturer or lecturer_name is not None:
            row.lecturer_name = lecturer_name
        if cloned_from_batch is not None:
            row.cloned_from_batch = cloned_from_batch
        self.db.flush()
        return row

    def _upsert_paper(
        self,
        module_id: int,
        batch_number: int,
        structure_json: Dict[str, Any],
        actor_profile_id: Optional[int],
    ) -> PastPaperStructure:
        row = self._paper_row(module_id, batch_number)
        if row is None:
            row = PastPaperStructure(
                module_id=module_id,
                batch_number=batch_number,
                created_by=actor_profile_id,
            )
            self.db.add(row)
        row.structure_json = structure_json
        row.updated_by = actor_profile_id
        self.db.flush()
        return row

    def _replace_cas(self, module_id: int, batch_number: int, cas: Sequence[Dict[str, Any]]) -> int:
        self.db.query(ContinuousAssessment).filter(
            ContinuousAssessment.module_id == module_id,
            ContinuousAssessment.batch_number == batch_number,
        ).delete(synchronize_session=False)

        for ca in cas:
            self.db.add(ContinuousAssessment(
                module_id=module_id,
                batch_number=batch_number,
                ca_number=ca["caNumber"],
                ca_type=ca["type"],
                ca_weight=ca["weight"],
                description=ca.get("description"),
            ))
        self.db.flush()
        return len(cas)

    def _append_edit_log(
        self,
        module_id: int,
        batch_number: int,
        content_row: Optional[ModuleContentVersion],
        actor_index: Optional[str],
        reason: str,
    ) -> EditLog:
        entry = EditLog(
            module_id=module_id,
            batch_number=batch_number,
            content_version_id=content_row.id if content_row else None,
            edited_by_index=actor_index or "unknown",
            edit_reason=reason,
            content_snapshot=content_row.content_json if content_row else None,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def _abort(self, result: SnapshotWriteResult, step: str, error: Exception) -> None:
        self.db.rollback()
        result.roll_back()
        if step != "edit_log":
            result.mark(step, StepOutcome.FAILED)
        logger.error(f"Error writing {step}: {str(error)}; rolled back {result.to_dict()}")
        raise StoreFailureError(str(error), extra={"steps": result.to_dict()})
