"""Tests for the shadow visibility filter."""

import pytest

from scoutcrm.core.schemas_prospects import PIPELINE_ORDER, ProspectStatus
from scoutcrm.core.status_policy import apply_assessment_activity
from scoutcrm.core.visibility import group_by_status, pipeline_view, shadow_view, visible_in_pipeline
from tests.fixtures_prospects import make_prospect


@pytest.mark.parametrize("status", list(ProspectStatus))
def test_hidden_exactly_when_shadow(status):
    """visible_in_pipeline is False if and only if status is Prospect."""
    p = make_prospect(status=status)
    assert visible_in_pipeline(p) is (status != ProspectStatus.PROSPECT)


def test_views_partition_and_keep_order():
    """pipeline_view and shadow_view split the collection, order preserved."""
    prospects = [make_prospect(f"P{i}", status=status) for i, status in enumerate(ProspectStatus)]
    visible = pipeline_view(prospects)
    hidden = shadow_view(prospects)

    assert [p.name for p in hidden] == ["P0"]
    assert [p.name for p in visible] == [f"P{i}" for i in range(1, len(ProspectStatus))]


def test_promotion_surfaces_immediately():
    """Visibility is recomputed from status, so a promoted prospect shows up."""
    p = make_prospect(status=ProspectStatus.PROSPECT)
    assert pipeline_view([p]) == []

    promoted = apply_assessment_activity(p, "submitted").prospect
    assert pipeline_view([promoted]) == [promoted]
    assert p.status == ProspectStatus.PROSPECT


def test_group_by_status_has_no_shadow_column():
    """Board columns cover every visible status in pipeline order."""
    columns = group_by_status(
        [
            make_prospect("A", status=ProspectStatus.LEAD),
            make_prospect("B", status=ProspectStatus.PROSPECT),
            make_prospect("C", status=ProspectStatus.LEAD),
        ]
    )
    assert ProspectStatus.PROSPECT not in columns
    assert list(columns) == PIPELINE_ORDER[1:]
    assert [p.name for p in columns[ProspectStatus.LEAD]] == ["A", "C"]
    assert columns[ProspectStatus.PLACED] == []
