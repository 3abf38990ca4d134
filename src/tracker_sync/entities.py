"""Pet tracker entity schemas.

Dependency order: scales -> pets -> contacts -> scaleLevels -> eventTypes ->
careItems -> carePlans -> events. Pets reference contacts "forward" (vet,
related contacts); those optional links are completed by push's
secondary-dependency fix-up once the contacts exist remotely.
"""

from __future__ import annotations

from typing import Any

from tracker_sync.core.schema import EntitySchema, FieldSpec, Matcher, RelationSpec, SchemaRegistry
from tracker_sync.remote.properties import PropertyKind as K
from tracker_sync.utils.timeutils import parse_iso

DEFAULT_HEURISTIC_WINDOW_SECONDS = 120

SCALES = "scales"
PETS = "pets"
CONTACTS = "contacts"
SCALE_LEVELS = "scaleLevels"
EVENT_TYPES = "eventTypes"
CARE_ITEMS = "careItems"
CARE_PLANS = "carePlans"
EVENTS = "events"

DEPENDENCY_ORDER: tuple[str, ...] = (
    SCALES,
    PETS,
    CONTACTS,
    SCALE_LEVELS,
    EVENT_TYPES,
    CARE_ITEMS,
    CARE_PLANS,
    EVENTS,
)


# ── Heuristic matchers ───────────────────────────────────────────────────────


def _norm(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().casefold()


def _same(*names: str) -> Matcher:
    """Match when every named field is equal (case/whitespace-insensitive)."""

    def matcher(local: dict[str, Any], remote: dict[str, Any]) -> bool:
        if not _norm(local.get(names[0])):
            return False
        return all(_norm(local.get(n)) == _norm(remote.get(n)) for n in names)

    return matcher


def _id_set(value: Any) -> frozenset[str]:
    if not value:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    return frozenset(v for v in value if v)


def _care_plan_matcher(local: dict[str, Any], remote: dict[str, Any]) -> bool:
    return (
        bool(_norm(local.get("name")))
        and _norm(local.get("name")) == _norm(remote.get("name"))
        and _id_set(local.get("petIds")) == _id_set(remote.get("petIds"))
    )


def make_event_matcher(window_seconds: float) -> Matcher:
    """Events match on pet set, event type, and start time within a window."""

    def matcher(local: dict[str, Any], remote: dict[str, Any]) -> bool:
        pets = _id_set(local.get("petIds"))
        if not pets or pets != _id_set(remote.get("petIds")):
            return False
        if local.get("eventTypeId") != remote.get("eventTypeId"):
            return False
        local_start = parse_iso(local.get("startDate"))
        remote_start = parse_iso(remote.get("startDate"))
        if local_start is None or remote_start is None:
            return False
        return abs((local_start - remote_start).total_seconds()) <= window_seconds

    return matcher


# ── Schemas ──────────────────────────────────────────────────────────────────


def build_registry(
    heuristic_window_seconds: float = DEFAULT_HEURISTIC_WINDOW_SECONDS,
) -> SchemaRegistry:
    """Build the pet tracker schema registry in dependency order."""
    scales = EntitySchema(
        name=SCALES,
        fields=(
            FieldSpec("name", "Name", K.TITLE),
            FieldSpec("valueType", "Value Type", K.SELECT),
            FieldSpec("unit", "Unit", K.RICH_TEXT),
            FieldSpec("notes", "Notes", K.RICH_TEXT),
        ),
        matcher=_same("name"),
    )

    pets = EntitySchema(
        name=PETS,
        fields=(
            FieldSpec("name", "Name", K.TITLE),
            FieldSpec("species", "Species", K.SELECT),
            FieldSpec("breed", "Breed", K.RICH_TEXT),
            FieldSpec("sex", "Sex", K.SELECT),
            FieldSpec("birthDate", "Birth Date", K.DATE),
            FieldSpec("adoptionDate", "Adoption Date", K.DATE),
            FieldSpec("status", "Status", K.SELECT),
            FieldSpec("microchipId", "Microchip ID", K.RICH_TEXT),
            FieldSpec("tags", "Tags", K.MULTI_SELECT),
            FieldSpec("notes", "Notes", K.RICH_TEXT),
            FieldSpec("targetWeightMin", "Target Weight Min", K.NUMBER),
            FieldSpec("targetWeightMax", "Target Weight Max", K.NUMBER),
            FieldSpec("weightUnit", "Weight Unit", K.SELECT),
            FieldSpec("color", "Color", K.RICH_TEXT),
            FieldSpec("isPrimary", "Is Primary", K.CHECKBOX),
        ),
        relations=(
            RelationSpec("primaryVetId", CONTACTS, "Primary Vet"),
            RelationSpec("relatedContactIds", CONTACTS, "Related Contacts", many=True),
        ),
        local_only_fields=("photoCacheKey",),
        matcher=_same("name", "species", "birthDate"),
    )

    contacts = EntitySchema(
        name=CONTACTS,
        fields=(
            FieldSpec("name", "Name", K.TITLE),
            FieldSpec("role", "Role", K.SELECT),
            FieldSpec("phone", "Phone", K.RICH_TEXT),
            FieldSpec("email", "Email", K.RICH_TEXT),
            FieldSpec("address", "Address", K.RICH_TEXT),
            FieldSpec("notes", "Notes", K.RICH_TEXT),
        ),
        relations=(RelationSpec("relatedPetIds", PETS, "Related Pets", many=True),),
        matcher=_same("name", "role"),
    )

    scale_levels = EntitySchema(
        name=SCALE_LEVELS,
        fields=(
            FieldSpec("name", "Name", K.TITLE),
            FieldSpec("order", "Order", K.NUMBER),
            FieldSpec("color", "Color", K.SELECT),
            FieldSpec("numericValue", "Numeric Value", K.NUMBER),
            FieldSpec("description", "Description", K.RICH_TEXT),
        ),
        relations=(RelationSpec("scaleId", SCALES, "Scale", required=True),),
        matcher=_same("name", "scaleId"),
    )

    event_types = EntitySchema(
        name=EVENT_TYPES,
        fields=(
            FieldSpec("name", "Name", K.TITLE),
            FieldSpec("category", "Category", K.SELECT),
            FieldSpec("trackingMode", "Tracking Mode", K.SELECT),
            FieldSpec("usesSeverity", "Uses Severity", K.CHECKBOX),
            FieldSpec("defaultColor", "Default Color", K.SELECT),
            FieldSpec("defaultIcon", "Default Icon", K.RICH_TEXT),
            FieldSpec("defaultTags", "Default Tags", K.MULTI_SELECT),
            FieldSpec("allowAttachments", "Allow Attachments", K.CHECKBOX),
            FieldSpec("defaultValueKind", "Default Value Kind", K.SELECT),
            FieldSpec("defaultUnit", "Default Unit", K.SELECT),
            FieldSpec("correlationGroup", "Correlation Group", K.SELECT),
        ),
        relations=(RelationSpec("defaultScaleId", SCALES, "Default Scale"),),
        matcher=_same("name", "category"),
    )

    care_items = EntitySchema(
        name=CARE_ITEMS,
        fields=(
            FieldSpec("name", "Name", K.TITLE),
            FieldSpec("type", "Type", K.SELECT),
            FieldSpec("defaultDose", "Default Dose", K.RICH_TEXT),
            FieldSpec("defaultUnit", "Default Unit", K.SELECT),
            FieldSpec("defaultRoute", "Default Route", K.SELECT),
            FieldSpec("activeStart", "Active Start", K.DATE),
            FieldSpec("activeEnd", "Active End", K.DATE),
            FieldSpec("notes", "Notes", K.RICH_TEXT),
            FieldSpec("active", "Active", K.CHECKBOX),
        ),
        relations=(
            RelationSpec("linkedEventTypeId", EVENT_TYPES, "Linked Event Type"),
            RelationSpec("relatedPetIds", PETS, "Related Pets", many=True),
        ),
        local_only_fields=("pendingFileIds",),
        matcher=_same("name", "type"),
    )

    care_plans = EntitySchema(
        name=CARE_PLANS,
        fields=(
            FieldSpec("name", "Name", K.TITLE),
            FieldSpec("scheduleType", "Schedule Type", K.SELECT),
            FieldSpec("intervalValue", "Interval Value", K.NUMBER),
            FieldSpec("intervalUnit", "Interval Unit", K.SELECT),
            FieldSpec("anchorDate", "Anchor Date", K.DATE),
            FieldSpec("dueTime", "Due Time", K.RICH_TEXT),
            FieldSpec("timeOfDayPreference", "Time of Day Preference", K.SELECT),
            FieldSpec("windowBefore", "Window Before", K.NUMBER),
            FieldSpec("windowAfter", "Window After", K.NUMBER),
            FieldSpec("endDate", "End Date", K.DATE),
            FieldSpec("timezone", "Timezone", K.RICH_TEXT),
            FieldSpec("nextDue", "Next Due", K.DATE),
            FieldSpec("upcomingCategory", "Upcoming Category", K.SELECT),
            FieldSpec("notes", "Notes", K.RICH_TEXT),
        ),
        relations=(
            RelationSpec("petIds", PETS, "Pet(s)", many=True, required=True),
            RelationSpec("careItemId", CARE_ITEMS, "Care Item"),
            RelationSpec("eventTypeId", EVENT_TYPES, "Event Type"),
        ),
        matcher=_care_plan_matcher,
    )

    events = EntitySchema(
        name=EVENTS,
        fields=(
            FieldSpec("title", "Title", K.TITLE),
            FieldSpec("startDate", "Start Date", K.DATE, end_field="endDate"),
            FieldSpec("endDate", "Start Date", K.DATE_END),
            FieldSpec("status", "Status", K.SELECT),
            FieldSpec("value", "Value", K.NUMBER),
            FieldSpec("unit", "Unit", K.SELECT),
            FieldSpec("duration", "Duration", K.NUMBER),
            FieldSpec("notes", "Notes", K.RICH_TEXT),
            FieldSpec("tags", "Tags", K.MULTI_SELECT),
            FieldSpec("source", "Source", K.SELECT),
            FieldSpec("cost", "Cost", K.NUMBER),
            FieldSpec("costCategory", "Cost Category", K.SELECT),
            FieldSpec("costCurrency", "Cost Currency", K.SELECT),
        ),
        relations=(
            RelationSpec("petIds", PETS, "Pet(s)", many=True, required=True),
            RelationSpec("eventTypeId", EVENT_TYPES, "Event Type"),
            RelationSpec("careItemId", CARE_ITEMS, "Care Item"),
            RelationSpec("severityLevelId", SCALE_LEVELS, "Severity Level"),
            RelationSpec("providerId", CONTACTS, "Provider"),
        ),
        local_only_fields=("pendingMediaIds",),
        matcher=make_event_matcher(heuristic_window_seconds),
    )

    return SchemaRegistry(
        [scales, pets, contacts, scale_levels, event_types, care_items, care_plans, events]
    )
