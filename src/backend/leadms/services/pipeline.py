"""Single-field lead edits triggered from the board.

Stage moves are unrestricted: any stage may move to any other, reopening
a Closed/Won lead included.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from leadms.models.lead import Lead, LeadStatus, STAGES, Stage
from leadms.services.lead_collection import LeadCollection
from leadms.utils.logger import get_logger

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: Dict[Stage, FrozenSet[Stage]] = {
    source: frozenset(target for target in STAGES if target != source) for source in STAGES
}


def can_transition(source: Stage, target: Stage) -> bool:
    return target == source or target in ALLOWED_TRANSITIONS[source]


def move_to_stage(collection: LeadCollection, lead_id: str, target) -> Lead:
    """Move a lead to ``target``; dropping it on its own column does nothing."""
    target = Stage(target)
    lead = collection.get(lead_id)
    if lead.stage == target:
        logger.debug("Lead id=%s already in stage %s", lead_id, target.value)
        return lead
    if not can_transition(lead.stage, target):
        raise ValueError(f"Cannot move lead from {lead.stage.value} to {target.value}")
    logger.info("Moving lead id=%s from %s to %s", lead_id, lead.stage.value, target.value)
    return collection.update(lead_id, {"stage": target})


def set_status(collection: LeadCollection, lead_id: str, status) -> Lead:
    """Overwrite ``lead_status``. Re-sending the current value still round-trips."""
    status = LeadStatus(status)
    return collection.update(lead_id, {"lead_status": status})


def reschedule_followup(
    collection: LeadCollection, lead_id: str, followup: Optional[datetime]
) -> Lead:
    return collection.update(lead_id, {"next_followup_date": followup})
