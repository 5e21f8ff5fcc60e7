# -*- coding: utf-8 -*-
"""
AlertFlow Data Models

Pydantic v2 data models shared by the rule engine and the flow store.

Enumerations:
    - FlowType: NurseCalls / Clinicals / Orders delivery-flow families
    - RuleRole: Derived role of a rule-engine rule
    - FilterRelation: View filter relations
    - MergeMode: Export-time consolidation of flow rows

Rule-engine models:
    - FilterClause, ViewDefinition
    - SettingsParameter, RuleSettings
    - Rule, RoleReference, RuleScope, ResolvedRule

Row models:
    - FlowRow (with per-row change tracking)
    - UnitRow

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


# =============================================================================
# Enumerations
# =============================================================================


class FlowType(str, Enum):
    """Delivery-flow families; each maps to one spreadsheet sheet."""

    NURSE_CALLS = "NurseCalls"
    CLINICALS = "Clinicals"
    ORDERS = "Orders"

    @classmethod
    def from_dataset(cls, dataset: Optional[str]) -> FlowType:
        """Derive the flow type from a rule-engine dataset name."""
        name = (dataset or "").lower()
        if "nurse" in name:
            return cls.NURSE_CALLS
        if "order" in name:
            return cls.ORDERS
        return cls.CLINICALS


class RuleRole(str, Enum):
    """Role of a rule, derived once by the classifier."""

    CREATE = "create"
    ESCALATE = "escalate"
    SEND = "send"
    IGNORED = "ignored"


class FilterRelation(str, Enum):
    """Relations a view filter may declare."""

    EQUAL = "equal"
    NOT_EQUAL = "not_equal"
    IN = "in"
    NOT_IN = "not_in"
    LIKE = "like"
    NOT_LIKE = "not_like"


POSITIVE_RELATIONS = frozenset(
    {FilterRelation.EQUAL.value, FilterRelation.IN.value, FilterRelation.LIKE.value}
)
NEGATIVE_RELATIONS = frozenset(
    {
        FilterRelation.NOT_EQUAL.value,
        FilterRelation.NOT_IN.value,
        FilterRelation.NOT_LIKE.value,
    }
)


class MergeMode(str, Enum):
    """How flow rows with identical delivery parameters are consolidated."""

    NONE = "none"
    MERGE_ALL = "merge_all"
    MERGE_BY_CONFIG_GROUP = "merge_by_config_group"


# =============================================================================
# Escalation states
# =============================================================================

#: Escalation state name -> chain position (1-based).
STATE_POSITIONS: Dict[str, int] = {
    "primary": 1,
    "secondary": 2,
    "tertiary": 3,
    "quaternary": 4,
    "quinary": 5,
}

MAX_CHAIN_LENGTH = 5

#: Facility value the vendor uses as a template rather than a real name.
FACILITY_PLACEHOLDER = "#{bed.room.facility.name}"


def normalize_state(state: Optional[str]) -> Optional[str]:
    """Normalize a state name; ``Group`` aliases ``Primary``.

    Returns None for blank input. Unknown state names are returned stripped
    but otherwise unchanged.
    """
    if state is None:
        return None
    text = state.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered == "group":
        return "Primary"
    if lowered in STATE_POSITIONS:
        return lowered.capitalize()
    return text


def state_position(state: Optional[str]) -> Optional[int]:
    """Chain position (1..5) for a state name, or None if unknown."""
    normalized = normalize_state(state)
    if normalized is None:
        return None
    return STATE_POSITIONS.get(normalized.lower())


def split_values(raw: Optional[str]) -> List[str]:
    """Split a comma-separated filter value into trimmed, non-empty parts."""
    if not raw:
        return []
    seen: List[str] = []
    for part in raw.split(","):
        item = part.strip()
        if item and item not in seen:
            seen.append(item)
    return seen


# =============================================================================
# View models
# =============================================================================


class FilterClause(BaseModel):
    """A single ``<filter>`` of a view: path, relation and value set."""

    path: str = Field(default="", description="Attribute path, e.g. alert_type")
    relation: str = Field(default="", description="Lower-cased relation")
    raw_value: str = Field(default="", description="Value text as read")
    values: List[str] = Field(
        default_factory=list, description="Comma-split, trimmed values",
    )

    model_config = {"frozen": True}

    @classmethod
    def from_raw(
        cls, path: Optional[str], relation: Optional[str], value: Optional[str],
    ) -> FilterClause:
        """Build a clause from raw XML text."""
        raw = (value or "").strip()
        return cls(
            path=(path or "").strip(),
            relation=(relation or "").strip().lower(),
            raw_value=raw,
            values=split_values(raw),
        )

    @property
    def is_positive(self) -> bool:
        return self.relation in POSITIVE_RELATIONS

    @property
    def is_negative(self) -> bool:
        return self.relation in NEGATIVE_RELATIONS

    def matches(self, candidate: str) -> bool:
        """Whether ``candidate`` is one of the clause values (case-insensitive).

        ``like`` clauses match on substring with ``%`` wildcards dropped.
        """
        probe = candidate.strip().lower()
        if self.relation in (FilterRelation.LIKE.value, FilterRelation.NOT_LIKE.value):
            return any(
                v.replace("%", "").strip().lower() in probe for v in self.values
            )
        return any(v.lower() == probe for v in self.values)


class ViewDefinition(BaseModel):
    """A named, immutable list of filter clauses within a dataset."""

    name: str
    dataset: str = ""
    filters: List[FilterClause] = Field(default_factory=list)

    model_config = {"frozen": True}


# =============================================================================
# Rule settings
# =============================================================================


def _scalar_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return json.dumps(value)


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return text[1:-1]
    return text


class SettingsParameter(BaseModel):
    """One entry of the settings ``parameters`` array."""

    path: str = ""
    name: str = ""
    value: str = ""

    model_config = {"extra": "ignore"}

    @field_validator("path", "name", "value", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _scalar_to_str(value) or ""


class RuleSettings(BaseModel):
    """Typed view of a rule's ``<settings>`` JSON.

    Only recognised keys are modelled; every other key is ignored.
    """

    destination: Optional[str] = None
    priority: Optional[str] = None
    ttl: Optional[str] = None
    enunciate: Optional[str] = None
    override_dnd: Optional[bool] = Field(default=None, alias="overrideDND")
    display_values: List[str] = Field(default_factory=list, alias="displayValues")
    parameters: List[SettingsParameter] = Field(default_factory=list)
    state: Optional[str] = None

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("destination", "priority", "ttl", "enunciate", "state", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> Optional[str]:
        return _scalar_to_str(value)

    @field_validator("override_dnd", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> Optional[bool]:
        if value is None or isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("true", "1", "yes", "y")

    @field_validator("display_values", mode="before")
    @classmethod
    def _coerce_display_values(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value if v is not None]
        return split_values(str(value))

    @field_validator("parameters", mode="before")
    @classmethod
    def _coerce_parameters(cls, value: Any) -> List[Any]:
        if not isinstance(value, list):
            return []
        return [v for v in value if isinstance(v, dict)]

    @classmethod
    def from_json(cls, text: Optional[str]) -> RuleSettings:
        """Parse settings JSON; malformed input yields empty settings."""
        if not text or not text.strip():
            return cls()
        try:
            payload = json.loads(text)
        except ValueError as exc:
            logger.warning("Ignoring malformed settings JSON: %s", exc)
            return cls()
        if not isinstance(payload, dict):
            logger.warning(
                "Ignoring settings JSON of type %s", type(payload).__name__,
            )
            return cls()
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Ignoring unusable settings JSON: %s", exc)
            return cls()

    def parameter(self, key: str) -> Optional[str]:
        """Value of the first parameter whose ``path`` or ``name`` is ``key``."""
        for param in self.parameters:
            if param.path == key or param.name == key:
                return _unquote(param.value)
        return None

    @property
    def target_state(self) -> Optional[str]:
        """State the rule sets: ``parameters[path=state]`` else top-level ``state``."""
        for param in self.parameters:
            if param.path == "state":
                value = _unquote(param.value)
                return value or None
        if self.state and self.state.strip():
            return self.state.strip()
        return None

    @property
    def has_destination(self) -> bool:
        return bool(self.destination and self.destination.strip())


# =============================================================================
# Rules
# =============================================================================

ADAPTER_COMPONENTS = frozenset({"VMP", "XMPP", "CUCM", "VOCERA", "OUTGOINGWCTP"})
DATA_UPDATE_COMPONENT = "DataUpdate"


class Rule(BaseModel):
    """A rule of an ``<interface>`` as read from the XML."""

    index: int = Field(..., ge=0, description="Document order")
    component: str = ""
    dataset: str = ""
    purpose: str = ""
    active: bool = True
    trigger_create: bool = False
    trigger_update: bool = False
    defer_delivery_by: Optional[str] = None
    condition_views: List[str] = Field(default_factory=list)
    settings: RuleSettings = Field(default_factory=RuleSettings)

    @property
    def is_data_update(self) -> bool:
        return self.component.strip().lower() == DATA_UPDATE_COMPONENT.lower()

    @property
    def is_adapter(self) -> bool:
        return self.component.strip().upper() in ADAPTER_COMPONENTS

    @property
    def is_reset(self) -> bool:
        return self.purpose.strip().upper().startswith("RESET")

    @property
    def label(self) -> str:
        return f"{self.component}#{self.index}"


class RoleReference(BaseModel):
    """A recipient role read from a ``role.name`` filter."""

    name: str
    path: str = ""


class RuleScope(BaseModel):
    """Alert types, facilities, units, state and roles a rule applies to."""

    alert_types: List[str] = Field(default_factory=list)
    excluded_alert_types: List[str] = Field(default_factory=list)
    alert_clauses: List[FilterClause] = Field(default_factory=list)
    facilities: List[str] = Field(default_factory=list)
    units: List[str] = Field(default_factory=list)
    excluded_units: List[str] = Field(default_factory=list)
    source_state: Optional[str] = None
    roles: List[RoleReference] = Field(default_factory=list)
    negative_role_filter: bool = False
    unresolved_views: List[str] = Field(default_factory=list)

    @property
    def has_alert_filter(self) -> bool:
        return bool(self.alert_clauses)

    def effective_alert_types(self) -> List[str]:
        """Included alert types minus the rule's own exclusions."""
        excluded = {a.lower() for a in self.excluded_alert_types}
        return [a for a in self.alert_types if a.lower() not in excluded]

    def excludes_alert_type(self, alert_type: str) -> bool:
        probe = alert_type.lower()
        return any(a.lower() == probe for a in self.excluded_alert_types)


class ResolvedRule(BaseModel):
    """A rule together with its derived role and resolved scope."""

    rule: Rule
    role: RuleRole
    scope: RuleScope = Field(default_factory=RuleScope)
    reason: str = ""


# =============================================================================
# Rows
# =============================================================================

#: Fields of FlowRow that are user-editable and change-tracked.
EDITABLE_FIELDS: Tuple[str, ...] = (
    "config_group", "alarm_name", "sending_name", "priority_raw",
    "device_a", "device_b", "ringtone", "response_options",
    "break_through_dnd", "multi_user_accept", "escalate_after",
    "ttl_value", "enunciate", "emdan",
    "t1", "r1", "t2", "r2", "t3", "r3", "t4", "r4", "t5", "r5",
)

#: Fields that must match for two rows to share one delivery flow.
DELIVERY_FIELDS: Tuple[str, ...] = (
    "priority_raw", "device_a", "device_b", "ringtone", "response_options",
    "break_through_dnd", "multi_user_accept", "escalate_after", "ttl_value",
    "enunciate", "emdan",
    "t1", "r1", "t2", "r2", "t3", "r3", "t4", "r4", "t5", "r5",
)


class FlowRow(BaseModel):
    """One delivery flow: an alarm, its scope and its escalation chain.

    ``original_values`` and ``changed_fields`` carry per-row edit tracking
    between a load and the next export.
    """

    flow_type: FlowType = FlowType.CLINICALS
    config_group: str = ""
    alarm_name: str = ""
    sending_name: str = ""
    priority_raw: str = ""
    device_a: str = ""
    device_b: str = ""
    ringtone: str = ""
    response_options: str = ""
    break_through_dnd: str = ""
    multi_user_accept: str = ""
    escalate_after: str = ""
    ttl_value: str = ""
    enunciate: str = ""
    emdan: str = ""
    t1: str = ""
    r1: str = ""
    t2: str = ""
    r2: str = ""
    t3: str = ""
    r3: str = ""
    t4: str = ""
    r4: str = ""
    t5: str = ""
    r5: str = ""
    original_values: Dict[str, str] = Field(default_factory=dict)
    changed_fields: Set[str] = Field(default_factory=set)

    # -- chain accessors ----------------------------------------------------

    def recipient(self, position: int) -> str:
        return getattr(self, f"r{_check_position(position)}")

    def timing(self, position: int) -> str:
        return getattr(self, f"t{_check_position(position)}")

    def set_recipient(self, position: int, value: str) -> None:
        setattr(self, f"r{_check_position(position)}", value or "")

    def set_timing(self, position: int, value: str) -> None:
        setattr(self, f"t{_check_position(position)}", value or "")

    def delivery_key(self) -> Tuple[str, ...]:
        return tuple(getattr(self, name) or "" for name in DELIVERY_FIELDS)

    @property
    def display_name(self) -> str:
        return self.alarm_name or self.sending_name

    # -- change tracking ----------------------------------------------------

    def capture_original(self) -> None:
        """Snapshot every editable field and forget previous edits."""
        self.original_values = {name: getattr(self, name) for name in EDITABLE_FIELDS}
        self.changed_fields = set()

    def update_field(self, name: str, value: Optional[str]) -> bool:
        """Assign an editable field and track whether it now differs.

        When no original was recorded for ``name`` the value before this
        edit becomes the original.

        Returns:
            True if the field is marked changed after the edit.
        """
        if name not in EDITABLE_FIELDS:
            raise KeyError(f"Not an editable flow field: {name}")
        new_value = value if value is not None else ""
        if name not in self.original_values:
            self.original_values[name] = getattr(self, name)
        setattr(self, name, new_value)
        if new_value != self.original_values[name]:
            self.changed_fields.add(name)
        else:
            self.changed_fields.discard(name)
        return name in self.changed_fields

    def is_changed(self, name: str) -> bool:
        return name in self.changed_fields

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_fields)

    def clear_changes(self) -> None:
        """Accept current values as the new originals."""
        self.capture_original()


def _check_position(position: int) -> int:
    if not 1 <= position <= MAX_CHAIN_LENGTH:
        raise ValueError(f"Chain position out of range: {position}")
    return position


_UNIT_SPLIT = re.compile(r"[,;/\n]")


class UnitRow(BaseModel):
    """One facility/unit row of the ``Unit Breakdown`` sheet."""

    facility: str = ""
    unit_names: str = ""
    nurse_group: str = ""
    clin_group: str = ""
    orders_group: str = ""
    no_caregiver_group: str = ""
    pod_room_filter: str = ""
    comments: str = ""

    def unit_list(self) -> List[str]:
        """Individual unit names of this row."""
        names: List[str] = []
        for token in _UNIT_SPLIT.split(self.unit_names or ""):
            token = token.strip()
            if token and token not in names:
                names.append(token)
        return names

    def group_field(self, flow_type: FlowType) -> str:
        if flow_type == FlowType.NURSE_CALLS:
            return self.nurse_group
        if flow_type == FlowType.ORDERS:
            return self.orders_group
        return self.clin_group

    def groups_for(self, flow_type: FlowType) -> List[str]:
        """Config groups this unit lists for a flow type."""
        return split_values(self.group_field(flow_type))


__all__ = [
    "FlowType",
    "RuleRole",
    "FilterRelation",
    "MergeMode",
    "POSITIVE_RELATIONS",
    "NEGATIVE_RELATIONS",
    "STATE_POSITIONS",
    "MAX_CHAIN_LENGTH",
    "FACILITY_PLACEHOLDER",
    "normalize_state",
    "state_position",
    "split_values",
    "FilterClause",
    "ViewDefinition",
    "SettingsParameter",
    "RuleSettings",
    "ADAPTER_COMPONENTS",
    "DATA_UPDATE_COMPONENT",
    "Rule",
    "RoleReference",
    "RuleScope",
    "ResolvedRule",
    "EDITABLE_FIELDS",
    "DELIVERY_FIELDS",
    "FlowRow",
    "UnitRow",
]
