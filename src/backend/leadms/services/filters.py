"""Dashboard filters over the in-memory lead list.

Every criterion is optional. A missing, empty or malformed value (say a
number where text is expected) is treated as "no constraint", so bad input
can only widen the result, never fail it.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from leadms.models.lead import Lead, LeadStatus, STAGES, Stage


def _text(value: Any) -> Optional[str]:
    # lowercased only; surrounding spaces are part of the needle
    if isinstance(value, str) and value.strip():
        return value.lower()
    return None


def _id_set(value: Any) -> FrozenSet[str]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return frozenset()
    return frozenset(str(item) for item in value if item is not None)


def _stage(value: Any) -> Optional[Stage]:
    try:
        return Stage(value)
    except (ValueError, TypeError):
        return None


def _status(value: Any) -> Optional[LeadStatus]:
    try:
        return LeadStatus(value)
    except (ValueError, TypeError):
        return None


@dataclass(frozen=True)
class FilterCriteria:
    # substring of the lead's city, case-insensitive; leads without a city never match
    city_contains: Optional[str] = None
    # substring of at least one interested service, case-insensitive
    service_contains: Optional[str] = None
    # substring of business name, contact person, phone, email or first-call notes
    free_text_query: Optional[str] = None
    # lead ids whose conversations matched free_text_query; they match regardless of fields
    conversation_match_ids: Optional[FrozenSet[str]] = None
    # exact stage / status selectors of the list view; values outside the enums are ignored
    stage: Optional[str] = None
    lead_status: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "FilterCriteria":
        if not isinstance(data, Mapping):
            return cls()
        known = {name: data.get(name) for name in cls.__dataclass_fields__}
        return cls(**known)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return isinstance(haystack, str) and needle in haystack.lower()


def matches_city(lead: Lead, needle: str) -> bool:
    return _contains(lead.city, needle)


def matches_service(lead: Lead, needle: str) -> bool:
    return any(_contains(service, needle) for service in lead.interested_services or [])


def matches_text(lead: Lead, needle: str, conversation_ids: FrozenSet[str]) -> bool:
    fields = (
        lead.business_name,
        lead.contact_person,
        lead.phone,
        lead.email,
        lead.notes_first_call,
    )
    if any(_contains(field, needle) for field in fields):
        return True
    return lead.id in conversation_ids


def apply_filters(leads: Iterable[Lead], criteria: Any = None) -> List[Lead]:
    """Return the leads that satisfy every supplied criterion, in input order."""
    if not isinstance(criteria, FilterCriteria):
        criteria = FilterCriteria.from_mapping(criteria)

    city = _text(criteria.city_contains)
    service = _text(criteria.service_contains)
    query = _text(criteria.free_text_query)
    conversation_ids = _id_set(criteria.conversation_match_ids)
    stage = _stage(criteria.stage)
    status = _status(criteria.lead_status)

    visible = []
    for lead in leads:
        if city and not matches_city(lead, city):
            continue
        if service and not matches_service(lead, service):
            continue
        if query and not matches_text(lead, query, conversation_ids):
            continue
        if stage is not None and lead.stage != stage:
            continue
        if status is not None and lead.lead_status != status:
            continue
        visible.append(lead)
    return visible


def group_by_stage(leads: Iterable[Lead]) -> Dict[str, List[Lead]]:
    """Kanban columns in pipeline order; every stage is present even when empty."""
    columns: Dict[str, List[Lead]] = {stage.value: [] for stage in STAGES}
    for lead in leads:
        columns[lead.stage.value].append(lead)
    return columns


def unique_cities(leads: Iterable[Lead]) -> List[str]:
    seen: Dict[str, None] = {}
    for lead in leads:
        if lead.city:
            seen.setdefault(lead.city, None)
    return list(seen)
