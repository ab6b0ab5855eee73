"""Tests for Prospect <-> scout_prospects row mapping."""

import json

import pytest

from scoutcrm.core.schemas_prospects import ActivityStatus, OutreachMethod, ProspectStatus
from scoutcrm.db.prospect_rows import (
    STATUS_TO_ROW,
    diff_prospects,
    evaluation_from_column,
    from_row,
    log_from_row,
    status_from_row,
    to_patch,
    to_row,
)
from tests.fixtures_prospects import OWNER_ID, SAMPLE_EVALUATION, SAMPLE_ROW, make_prospect


def _stored(row: dict) -> dict:
    """What the store hands back after an insert."""
    return {**row, "id": "row-9", "created_at": "2026-02-01T00:00:00+00:00"}


class TestStatusMapping:
    @pytest.mark.parametrize("status", list(ProspectStatus))
    def test_round_trip(self, status):
        """Every status survives to_row/from_row."""
        p = make_prospect(status=status)
        assert from_row(_stored(to_row(p, OWNER_ID))).status == status

    def test_mapping_table_is_exact(self):
        """Final-Review is stored as final_review, not a lowercased label."""
        assert STATUS_TO_ROW[ProspectStatus.FINAL_REVIEW] == "final_review"
        assert len(set(STATUS_TO_ROW.values())) == len(ProspectStatus)

    @pytest.mark.parametrize("token", ["hot_lead", "final-review", "", None, "signed"])
    def test_legacy_tokens_read_as_lead(self, token):
        """Unknown stored tokens default to Lead instead of failing."""
        assert status_from_row(token) == ProspectStatus.LEAD

    def test_stored_tokens_are_case_insensitive(self):
        assert status_from_row(" PLACED ") == ProspectStatus.PLACED


class TestToRow:
    def test_flattens_evaluation_to_json_text(self):
        """Evaluation is one JSON column with camelCase keys."""
        row = to_row(make_prospect(evaluation=SAMPLE_EVALUATION), OWNER_ID)
        decoded = json.loads(row["evaluation"])
        assert decoded["scholarshipTier"] == "Tier 1"
        assert decoded["nextAction"] == "Invite to ID Day"

    def test_never_writes_null_text(self):
        """Missing and blank text become None, never the string "null"."""
        row = to_row(make_prospect(email="", club=None, notes="   "), OWNER_ID)
        assert row["email"] is None
        assert row["club"] is None
        assert row["notes"] is None
        assert "null" not in [v for v in row.values() if isinstance(v, str)]
        assert row["evaluation"] is None

    def test_local_fields_and_owner(self):
        """id, logs and pending marker stay local; scout_id marks the owner."""
        row = to_row(make_prospect(pending_sync=True), OWNER_ID)
        assert "id" not in row
        assert "outreach_logs" not in row
        assert "pending_sync" not in row
        assert row["scout_id"] == OWNER_ID
        assert row["activity_status"] == "undiscovered"

    def test_guardian_fields_use_parent_columns(self):
        row = to_row(make_prospect(guardian_email="mum@example.com"), OWNER_ID)
        assert row["parent_email"] == "mum@example.com"


class TestFromRow:
    def test_sample_row(self):
        """A stored row maps onto the entity, blank text reading as absent."""
        p = from_row(SAMPLE_ROW)
        assert p.id == "row-1"
        assert p.status == ProspectStatus.FINAL_REVIEW
        assert p.guardian_name == "Ana Silva"
        assert p.guardian_phone is None
        assert p.phone is None
        assert p.activity_status == ActivityStatus.VIEWED
        assert p.evaluation.score == 77
        assert p.evaluation.strengths == ["Pace"]
        assert p.pending_sync is False

    def test_missing_required_text_gets_defaults(self):
        p = from_row({"id": 5, "status": "lead"})
        assert p.id == "5"
        assert p.name == "Unnamed Prospect"
        assert p.position == "Unknown"

    def test_evaluation_column_tolerance(self):
        """Decoded dicts are accepted; broken JSON or bad shapes read as absent."""
        assert evaluation_from_column({"score": 60}).score == 60
        assert evaluation_from_column("{not json") is None
        assert evaluation_from_column('{"score": 400}') is None
        assert evaluation_from_column("[1, 2]") is None
        assert evaluation_from_column("") is None


class TestPatches:
    def test_diff_and_patch_contain_only_changes(self):
        """A status change produces a one-column patch with the stored token."""
        before = make_prospect(status=ProspectStatus.CONTACTED)
        after = before.model_copy(update={"status": ProspectStatus.FINAL_REVIEW})
        assert to_patch(diff_prospects(before, after)) == {"status": "final_review"}

    def test_unchanged_entities_produce_empty_patch(self):
        p = make_prospect()
        assert to_patch(diff_prospects(p, p)) == {}

    def test_patch_skips_local_fields_and_rejects_unknown(self):
        assert to_patch({"pending_sync": False, "notes": "x"}) == {"notes": "x"}
        with pytest.raises(ValueError):
            to_patch({"shoe_size": 42})


class TestOutreachLogRows:
    def test_unknown_method_is_skipped(self):
        assert log_from_row({"id": "l1", "method": "Carrier Pigeon"}) is None

    def test_log_row(self):
        log = log_from_row(
            {
                "id": "l1",
                "method": "WhatsApp",
                "template_name": "First Spark",
                "note": "",
                "created_at": "2026-01-02T00:00:00+00:00",
            }
        )
        assert log.method == OutreachMethod.WHATSAPP
        assert log.note is None
