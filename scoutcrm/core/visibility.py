"""Shadow visibility rules for the pipeline board.

Prospects in the Prospect (shadow) status stay off the primary pipeline and
only show up in the outreach/import review view. Visibility is derived from
status on every read; nothing is cached on the entity.
"""

from collections.abc import Iterable

from scoutcrm.core.schemas_prospects import PIPELINE_ORDER, Prospect, ProspectStatus


def visible_in_pipeline(prospect: Prospect) -> bool:
    return prospect.status != ProspectStatus.PROSPECT


def pipeline_view(prospects: Iterable[Prospect]) -> list[Prospect]:
    """Prospects shown on the primary board, input order preserved."""
    return [p for p in prospects if visible_in_pipeline(p)]


def shadow_view(prospects: Iterable[Prospect]) -> list[Prospect]:
    """Prospects still hidden in the shadow state."""
    return [p for p in prospects if not visible_in_pipeline(p)]


def group_by_status(prospects: Iterable[Prospect]) -> dict[ProspectStatus, list[Prospect]]:
    """Board columns for every visible status, in pipeline order."""
    columns: dict[ProspectStatus, list[Prospect]] = {
        status: [] for status in PIPELINE_ORDER if status != ProspectStatus.PROSPECT
    }
    for prospect in pipeline_view(prospects):
        columns[prospect.status].append(prospect)
    return columns
