from datetime import datetime, timezone

import pytest

from unidash.core.batch_policy import (
    BatchPolicyConfig,
    annotate_availability,
    can_edit_module,
    derive_academic_year,
    edit_permissions,
    ensure_own_batch,
    pick_default_batch,
    resolve_viewable_batches,
    validate_ca_configuration,
)
from unidash.core.errors import ForbiddenError


def at(day, hour=12):
    return datetime(2026, 3, day, hour, tzinfo=timezone.utc)


class TestResolveViewableBatches:
    @pytest.mark.parametrize("n", [1, 2, 3])
    def test_small_batch_numbers_stop_at_one(self, n):
        assert resolve_viewable_batches(n) == list(range(n, 0, -1))

    @pytest.mark.parametrize("n", [4, 5, 24, 100])
    def test_four_batches_for_larger_numbers(self, n):
        assert resolve_viewable_batches(n) == [n, n - 1, n - 2, n - 3]

    @pytest.mark.parametrize("n", [0, -3, None])
    def test_malformed_input_gives_empty_list(self, n):
        assert resolve_viewable_batches(n) == []

    def test_lookback_window_is_configurable(self):
        config = BatchPolicyConfig(lookback_window=1)
        assert resolve_viewable_batches(24, config) == [24, 23]


class TestAnnotateAvailability:
    def test_one_summary_per_viewable_batch(self):
        viewable = [24, 23, 22, 21]
        summaries = annotate_availability(
            viewable,
            content_rows=[{"batch_number": 22, "updated_at": at(5), "lecturer_name": "Dr. Perera"}],
            paper_rows=[{"batch_number": 23, "updated_at": at(2)}],
            ca_rows=[],
        )

        assert [s.batch_number for s in summaries] == viewable
        by_batch = {s.batch_number: s for s in summaries}
        assert by_batch[22].has_content and by_batch[22].lecturer_name == "Dr. Perera"
        assert by_batch[23].has_paper_structure and not by_batch[23].has_content
        assert not by_batch[24].has_data
        assert not by_batch[21].has_data

    def test_rows_outside_window_are_ignored(self):
        summaries = annotate_availability([5, 4], [{"batch_number": 1, "updated_at": at(1)}], [], [])
        assert [s.batch_number for s in summaries] == [5, 4]
        assert not any(s.has_data for s in summaries)

    def test_ca_timestamp_is_latest_of_the_set(self):
        summaries = annotate_availability(
            [3],
            [],
            [],
            [{"batch_number": 3, "updated_at": at(1)}, {"batch_number": 3, "updated_at": at(9)}],
        )
        assert summaries[0].has_cas
        assert summaries[0].ca_updated_at == at(9)

    def test_updated_at_is_most_recent_of_three_sources(self):
        summary = annotate_availability(
            [7],
            [{"batch_number": 7, "updated_at": at(3)}],
            [{"batch_number": 7, "updated_at": at(8)}],
            [{"batch_number": 7, "updated_at": at(1)}],
        )[0]
        assert summary.updated_at == at(8)

    def test_response_omits_missing_timestamps(self):
        data = annotate_availability([2], [], [], [])[0].to_response()
        assert data == {
            "batchNumber": 2,
            "hasContent": False,
            "hasPaperStructure": False,
            "hasCAs": False,
        }


class TestPickDefaultBatch:
    def test_all_dataless_returns_own_batch(self):
        summaries = annotate_availability([24, 23, 22, 21], [], [], [])
        assert pick_default_batch(summaries, 24) == 24

    def test_latest_updated_batch_wins(self):
        summaries = annotate_availability(
            [24, 23, 22, 21],
            [
                {"batch_number": 23, "updated_at": at(1)},
                {"batch_number": 22, "updated_at": at(10)},
            ],
            [{"batch_number": 21, "updated_at": at(4)}],
            [],
        )
        assert pick_default_batch(summaries, 24) == 22

    def test_paper_update_counts_towards_recency(self):
        summaries = annotate_availability(
            [10, 9],
            [{"batch_number": 10, "updated_at": at(2)}],
            [{"batch_number": 9, "updated_at": at(6)}],
            [],
        )
        assert pick_default_batch(summaries, 10) == 9

    def test_mixed_string_and_naive_timestamps(self):
        summaries = annotate_availability(
            [6, 5],
            [{"batch_number": 6, "updated_at": "2026-03-01T10:00:00Z"}],
            [{"batch_number": 5, "updated_at": datetime(2026, 3, 2, 9, 0)}],
            [],
        )
        assert pick_default_batch(summaries, 6) == 5

    def test_result_is_always_viewable_or_own(self):
        viewable = resolve_viewable_batches(8)
        summaries = annotate_availability(viewable, [{"batch_number": 5, "updated_at": None}], [], [])
        assert pick_default_batch(summaries, 8) in viewable


class TestEditPermissions:
    def test_academic_year_from_offset(self):
        assert derive_academic_year(24) == 1
        assert derive_academic_year(21) == 4
        assert derive_academic_year(24, BatchPolicyConfig(academic_year_offset=26)) == 2

    def test_at_least_rule(self):
        assert can_edit_module(23, 1)
        assert can_edit_module(23, 2)
        assert not can_edit_module(23, 3)

    def test_exact_rule(self):
        config = BatchPolicyConfig(edit_year_rule="exact")
        assert can_edit_module(23, 2, config)
        assert not can_edit_module(23, 1, config)

    def test_topics_need_own_batch_but_assessments_do_not(self):
        permissions = edit_permissions(24, 22, module_year=1)
        assert permissions.can_edit
        assert not permissions.is_viewing_own_batch
        assert not permissions.can_edit_topics
        assert permissions.can_edit_assessments

    def test_viewing_batch_defaults_to_own(self):
        permissions = edit_permissions(24, None, module_year=1)
        assert permissions.is_viewing_own_batch
        assert permissions.can_edit_topics

    def test_no_rights_for_senior_module(self):
        permissions = edit_permissions(24, 24, module_year=3)
        assert not permissions.can_edit
        assert not permissions.can_edit_topics
        assert not permissions.can_edit_assessments


class TestEnsureOwnBatch:
    def test_same_batch_passes(self):
        ensure_own_batch(24, 24)

    def test_other_batch_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            ensure_own_batch(24, 22)

    def test_clone_message(self):
        with pytest.raises(ForbiddenError) as exc_info:
            ensure_own_batch(24, 23, action="clone")
        assert exc_info.value.detail == "You can only clone to your own batch"


class TestValidateCAConfiguration:
    def test_valid_configuration(self):
        report = validate_ca_configuration([
            {"caNumber": 1, "type": "mcq", "weight": 20},
            {"caNumber": 2, "type": "presentation", "weight": 30},
        ])
        assert report.valid
        assert report.total_ca_weight == 50
        assert report.written_exam_weight == 50

    def test_violations_are_flagged_not_raised(self):
        report = validate_ca_configuration([
            {"caNumber": 1, "type": "mcq", "weight": 50},
            {"caNumber": 1, "type": "quiz", "weight": 45},
            {"caNumber": 3, "type": "video", "weight": 40},
        ])
        assert not report.valid
        assert report.written_exam_weight == -35
        joined = " ".join(report.warnings)
        assert "more than once" in joined
        assert "45%" in joined
        assert "unknown type 'quiz'" in joined
        assert "At most 2" in joined
        assert "exceeds 100%" in joined

    def test_empty_list(self):
        report = validate_ca_configuration([])
        assert report.valid
        assert report.to_response()["writtenExamWeight"] == 100
