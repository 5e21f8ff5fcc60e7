# -*- coding: utf-8 -*-
"""
JSON Delivery-Flow Codec

Writes flow rows as a JSON delivery-flow document and reads such a
document back into flow rows and unit rows.

Document shape::

    {
      "version": "1.1.0",
      "alarmAlertDefinitions": [{"name", "type", "values": [...]}],
      "deliveryFlows": [{
          "name", "priority", "status", "alarmsAlerts", "conditions",
          "destinations", "interfaces", "parameterAttributes", "units"
      }]
    }

String parameter values are JSON-quoted inside the ``value`` field
(``"\\"Accepted\\""``), matching what the vendor platform imports.

Example:
    >>> writer = JsonFlowWriter()
    >>> document = writer.build_document(store, merge_mode=MergeMode.MERGE_ALL)
    >>> rows, units = JsonFlowReader().read("flows.json")

Author: AlertFlow Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from alertflow.config import AlertFlowConfig, get_config
from alertflow.exceptions import JsonDocumentError
from alertflow.flow_store.merge import MergedFlow, merge_flows
from alertflow.flow_store.row_store import RowStore
from alertflow.metrics import record_export
from alertflow.models import MAX_CHAIN_LENGTH, FlowRow, FlowType, MergeMode, UnitRow

logger = logging.getLogger(__name__)

__all__ = [
    "NURSE_CONDITIONS",
    "quote",
    "unquote",
    "map_priority",
    "reverse_priority",
    "map_interface",
    "parse_delay",
    "split_recipients",
    "ParsedRecipient",
    "parse_recipient",
    "response_type",
    "JsonFlowWriter",
    "JsonFlowReader",
]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NURSE_CONDITIONS: List[Dict[str, Any]] = [
    {
        "filters": [
            {"attributePath": "bed", "operator": "not_null"},
            {"attributePath": "to.type", "operator": "not_equal", "value": "TargetGroups"},
        ],
        "name": "NurseCallsCondition",
    },
]

_FLOW_PREFIX: Dict[FlowType, str] = {
    FlowType.NURSE_CALLS: "SEND NURSECALL",
    FlowType.CLINICALS: "SEND CLINICAL",
    FlowType.ORDERS: "SEND ORDER",
}

_PASS_THROUGH_INTERFACES = ("VMP", "Vocera", "XMPP", "CUCM")

_PRIORITY_TO_JSON: Dict[str, str] = {
    "low": "normal", "l": "normal", "normal": "normal", "n": "normal",
    "medium": "high", "med": "high", "m": "high",
    "high": "urgent", "h": "urgent", "urgent": "urgent", "u": "urgent",
}

_PRIORITY_FROM_JSON: Dict[str, str] = {
    "normal": "Low",
    "high": "Medium",
    "urgent": "High",
}

_TEMPLATES: Dict[FlowType, Dict[str, str]] = {
    FlowType.NURSE_CALLS: {
        "message": "Patient: #{bed.patient.last_name}, #{bed.patient.first_name}\\n"
                   "Room/Bed: #{bed.room.name} - #{bed.bed_number}",
        "patientMRN": "#{bed.patient.mrn}:#{bed.patient.visit_number}",
        "patientName": "#{bed.patient.first_name} #{bed.patient.middle_name} "
                       "#{bed.patient.last_name}",
        "placeUid": "#{bed.uid}",
        "shortMessage": "#{alert_type} #{bed.room.name}",
    },
    FlowType.CLINICALS: {
        "message": "Clinical Alert ${destinationName}\\n"
                   "Room: #{bed.room.name} - #{bed.bed_number}\\n"
                   "Alert Type: #{alert_type}\\nAlarm Time: #{alarm_time.as_time}",
        "patientMRN": "#{clinical_patient.mrn}:#{clinical_patient.visit_number}",
        "patientName": "#{clinical_patient.first_name} #{clinical_patient.middle_name} "
                       "#{clinical_patient.last_name}",
        "placeUid": "#{bed.uid}",
        "shortMessage": "#{alert_type} #{bed.room.name} Bed #{bed.bed_number}",
    },
    FlowType.ORDERS: {
        "message": "Order: #{alert_type}\\n"
                   "Patient: #{patient.last_name}, #{patient.first_name}\\n"
                   "Room/Bed: #{patient.current_place.room.name} - "
                   "#{patient.current_place.bed_number}",
        "patientMRN": "#{patient.mrn}:#{patient.visit_number}",
        "patientName": "#{patient.first_name} #{patient.middle_name} #{patient.last_name}",
        "placeUid": "#{patient.current_place.uid}",
        "shortMessage": "#{alert_type} #{patient.current_place.room.name}",
    },
}

EMDAN_SHORT_MESSAGE = "#{alert_type} #{bed.room.name}"
NO_CAREGIVER_SHORT_MESSAGE = (
    "NoCaregiver Assigned for #{alert_type} in #{bed.room.name} Bed #{bed.bed_number}"
)
NO_CAREGIVER_SUBJECT = (
    "NoCaregiver assigned for #{alert_type} #{bed.room.name} Bed #{bed.bed_number}"
)

_TRUE_WORDS = frozenset({"y", "yes", "true", "1", "enunciate", "enunciate_always"})
_RECIPIENT_SPLIT = re.compile(r"[,;\n]")
_FACILITY_SEPARATOR = re.compile(r"::|:")
_VGROUP_PREFIX = re.compile(r"(?i)^\s*v(?:group|assign)\s*[: ]*")
_ROOM_TOKEN = re.compile(r"(?i)^\s*\[\s*room\s*\]\s*")


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def quote(text: Optional[str]) -> str:
    """JSON-quote a string parameter value."""
    return json.dumps(text or "")


def unquote(value: Any) -> str:
    """Inverse of :func:`quote`; non-quoted values are returned as text."""
    if value is None:
        return ""
    text = str(value).strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        try:
            decoded = json.loads(text)
        except ValueError:
            return text[1:-1]
        return decoded if isinstance(decoded, str) else text
    return text


def _is_yes(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE_WORDS


def map_priority(raw: Optional[str]) -> str:
    """GUI priority to JSON priority; unknown and empty values map to normal."""
    text = (raw or "").strip()
    text = re.sub(r"(?i)\s*\(edge\)\s*$", "", text).strip().lower()
    return _PRIORITY_TO_JSON.get(text, "normal")


def reverse_priority(value: Optional[str]) -> str:
    return _PRIORITY_FROM_JSON.get((value or "").strip().lower(), "")


def map_interface(device_a: Optional[str], default_interface: str) -> str:
    """Interface component for a Device-A value."""
    probe = (device_a or "").strip().lower()
    for name in _PASS_THROUGH_INTERFACES:
        if probe == name.lower():
            return name
    return default_interface


def reverse_interface(component: Optional[str]) -> str:
    name = (component or "").strip()
    if not name or name.lower() == "outgoingwctp":
        return "Edge"
    return name


def parse_delay(text: Optional[str]) -> int:
    """Digits of a timing cell as seconds; Immediate and blanks are 0."""
    digits = re.sub(r"[^0-9]", "", text or "")
    return int(digits) if digits else 0


def split_recipients(text: Optional[str]) -> List[str]:
    parts = []
    for part in _RECIPIENT_SPLIT.split(text or ""):
        part = part.strip()
        if part and part.upper() not in ("N/A", "NA"):
            parts.append(part)
    return parts


class ParsedRecipient(BaseModel):
    """A single recipient token split into facility, name and kind."""

    facility: str = ""
    value: str = ""
    is_functional_role: bool = False
    room_scoped: bool = False


def parse_recipient(
    raw: str,
    default_facility: str,
    role_pattern: "re.Pattern[str]",
) -> ParsedRecipient:
    """Parse one recipient token such as ``VAssign:[Room] Nurse`` or ``Fac:: Group``."""
    text = (raw or "").strip()
    facility = default_facility or ""
    if not text:
        return ParsedRecipient(facility=facility)

    portion = text
    match = _FACILITY_SEPARATOR.search(text)
    if match and match.start() > 0:
        prefix = text[:match.start()].strip()
        suffix = text[match.end():].strip()
        if prefix and suffix and prefix.lower() not in ("vgroup", "vassign"):
            facility = prefix
            portion = suffix

    cleaned = _VGROUP_PREFIX.sub("", portion, count=1).strip()
    room_scoped = bool(_ROOM_TOKEN.match(cleaned))
    cleaned = _ROOM_TOKEN.sub("", cleaned, count=1).strip()
    return ParsedRecipient(
        facility=facility,
        value=cleaned,
        is_functional_role=bool(role_pattern.search(portion)),
        room_scoped=room_scoped,
    )


def response_type(options: Optional[str]) -> str:
    """responseType parameter for a Response Options cell."""
    text = (options or "").strip().lower()
    if not text or "no response" in text:
        return "None"
    if "call back" in text or "callback" in text:
        return "Accept/Decline/Call"
    return "Accept/Decline"


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class JsonFlowWriter:
    """Builds JSON delivery-flow documents from a :class:`RowStore`."""

    def __init__(self, config: Optional[AlertFlowConfig] = None) -> None:
        self._config = config or get_config()
        self._role_pattern = re.compile(self._config.functional_role_regex)

    def build_document(
        self,
        store: RowStore,
        merge_mode: Optional[MergeMode] = None,
        flow_types: Optional[Sequence[FlowType]] = None,
    ) -> Dict[str, Any]:
        """Build one document covering the requested flow types (default all)."""
        mode = merge_mode or self._config.merge_mode_enum
        types = list(flow_types) if flow_types else list(FlowType)

        definitions: List[Dict[str, Any]] = []
        flows: List[Dict[str, Any]] = []
        for flow_type in types:
            rows = store.flow_rows(flow_type)
            definitions.extend(self._alarm_definitions(rows, flow_type))
            for merged in merge_flows(rows, store.units_for, mode):
                flows.append(self.build_flow(merged, flow_type))

        logger.info(
            "Built JSON document: definitions=%d, flows=%d, merge_mode=%s",
            len(definitions), len(flows), mode.value,
        )
        return {
            "version": self._config.output_version,
            "alarmAlertDefinitions": definitions,
            "deliveryFlows": flows,
        }

    def write(
        self,
        store: RowStore,
        file_path: Union[str, Path],
        merge_mode: Optional[MergeMode] = None,
        flow_types: Optional[Sequence[FlowType]] = None,
    ) -> Dict[str, Any]:
        """Write a document to disk, creating parent directories.

        Raises:
            JsonDocumentError: If the file cannot be written.
        """
        mode = merge_mode or self._config.merge_mode_enum
        document = self.build_document(store, mode, flow_types)
        path = Path(file_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
        except OSError as exc:
            raise JsonDocumentError(
                message=f"Cannot write JSON document: {exc.strerror or exc}",
                file_path=str(path),
            ) from exc
        record_export("json", mode.value)
        logger.info("Wrote JSON delivery flows to %s", path)
        return document

    # ------------------------------------------------------------------
    # Document parts
    # ------------------------------------------------------------------

    @staticmethod
    def _alarm_definitions(
        rows: Iterable[FlowRow], flow_type: FlowType,
    ) -> List[Dict[str, Any]]:
        seen: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            name = row.display_name
            if not name or name in seen:
                continue
            seen[name] = {
                "name": name,
                "type": flow_type.value,
                "values": [{"category": "", "value": row.sending_name or name}],
            }
        return list(seen.values())

    def build_flow(self, merged: MergedFlow, flow_type: FlowType) -> Dict[str, Any]:
        """Build one ``deliveryFlows`` entry."""
        row = merged.template
        priority = map_priority(row.priority_raw)
        interface = map_interface(row.device_a, self._config.default_interface)

        flow: Dict[str, Any] = {
            "name": self._flow_name(merged, flow_type, priority),
            "priority": priority,
            "status": "Active",
            "alarmsAlerts": merged.alarm_names,
            "conditions": [dict(c) for c in NURSE_CONDITIONS]
            if flow_type == FlowType.NURSE_CALLS else [],
            "destinations": self._destinations(merged, flow_type),
            "interfaces": [{"componentName": interface, "referenceName": interface}],
            "parameterAttributes": self._parameters(merged, flow_type),
            "units": [
                {"facilityName": u.facility_name, "name": u.name}
                for u in merged.units if u.name
            ],
        }
        return flow

    @staticmethod
    def _flow_name(merged: MergedFlow, flow_type: FlowType, priority: str) -> str:
        parts = [_FLOW_PREFIX[flow_type], priority.upper()]
        for chunk in (merged.alarm_names, merged.config_groups, merged.unit_names()):
            if chunk:
                parts.append(" / ".join(chunk))
        return " | ".join(p for p in parts if p)

    def _recipients_at(
        self, row: FlowRow, position: int, facility: str,
    ) -> Tuple[List[Dict[str, str]], List[Dict[str, str]]]:
        groups: List[Dict[str, str]] = []
        roles: List[Dict[str, str]] = []
        for token in split_recipients(row.recipient(position)):
            parsed = parse_recipient(token, facility, self._role_pattern)
            if not parsed.value:
                continue
            entry: Dict[str, Any] = {"facilityName": parsed.facility, "name": parsed.value}
            if parsed.is_functional_role:
                if not parsed.room_scoped:
                    entry["roomScoped"] = False
                roles.append(entry)
            else:
                groups.append(entry)
        return groups, roles

    def _destinations(self, merged: MergedFlow, flow_type: FlowType) -> List[Dict[str, Any]]:
        row = merged.template
        facility = merged.facility
        presence = "device" if _is_yes(row.break_through_dnd) else "user_and_device"
        destinations: List[Dict[str, Any]] = []
        last_order = -1

        for position in range(1, MAX_CHAIN_LENGTH + 1):
            groups, roles = self._recipients_at(row, position, facility)
            if not groups and not roles:
                if row.timing(position).strip():
                    last_order = position - 1
                    destinations.append({
                        "order": last_order,
                        "delayTime": parse_delay(row.timing(position)),
                        "destinationType": "Normal",
                        "users": [],
                        "functionalRoles": [],
                        "groups": [],
                        "presenceConfig": presence,
                        "recipientType": "none",
                    })
                continue
            order = position - 1
            last_order = order
            delay = parse_delay(row.timing(position))
            if groups:
                destinations.append({
                    "order": order,
                    "delayTime": delay,
                    "destinationType": "Normal",
                    "users": [],
                    "functionalRoles": [],
                    "groups": groups,
                    "presenceConfig": presence,
                    "recipientType": "group",
                })
            if roles:
                destinations.append({
                    "order": order,
                    "delayTime": delay,
                    "destinationType": "Normal",
                    "users": [],
                    "functionalRoles": roles,
                    "groups": [],
                    "presenceConfig": presence,
                    "recipientType": "functional_role",
                })

        if flow_type == FlowType.CLINICALS and merged.no_caregiver_group:
            destinations.append({
                "order": last_order + 1,
                "delayTime": 0,
                "destinationType": "NoDeliveries",
                "users": [],
                "functionalRoles": [],
                "groups": [{"facilityName": facility, "name": merged.no_caregiver_group}],
                "presenceConfig": "device",
                "recipientType": "group",
            })
        return destinations

    def _parameters(self, merged: MergedFlow, flow_type: FlowType) -> List[Dict[str, Any]]:
        row = merged.template
        templates = _TEMPLATES[flow_type]
        options = (row.response_options or "").lower()
        rtype = response_type(row.response_options)
        params: List[Dict[str, Any]] = []

        def add(name: str, value: str, order: Optional[int] = None) -> None:
            entry: Dict[str, Any] = {"name": name, "value": value}
            if order is not None:
                entry["destinationOrder"] = order
            params.append(entry)

        if row.ringtone.strip():
            add("alertSound", quote(row.ringtone.strip()))
        add("responseType", quote(rtype))

        if rtype != "None":
            if "acknowledge" in options:
                add("accept", quote("Accepted"))
                add("acceptBadgePhrases", json.dumps(["Acknowledge"]))
            elif "accept" in options:
                add("accept", quote("Accepted"))
                add("acceptBadgePhrases", json.dumps(["Accept"]))
            if rtype == "Accept/Decline/Call":
                add("acceptAndCall", quote("Call Back"))
            if "escalate" in options or "decline" in options or "reject" in options:
                phrase = "Escalate" if "escalate" in options else (
                    "Reject" if "reject" in options else "Decline"
                )
                add("decline", quote("Decline Primary"))
                add("declineBadgePhrases", json.dumps([phrase]))
            add("respondingLine", quote("responses.line.number"))
            add("respondingUser", quote("responses.usr.login"))
            add("responsePath", quote("responses.action"))

        if "all" in (row.escalate_after or "").lower():
            add("declineCount", quote("All Recipients"))

        add("breakThrough", quote("voceraAndDevice" if _is_yes(row.break_through_dnd) else "none"))
        add("enunciate", "true" if _is_yes(row.enunciate) else "false")
        add("message", quote(templates["message"]))
        add("patientMRN", quote(templates["patientMRN"]))
        add("patientName", quote(templates["patientName"]))
        add("placeUid", quote(templates["placeUid"]))
        add("popup", "true")
        add("eventIdentification", quote(f"{flow_type.value}:#{{id}}"))

        short_message = templates["shortMessage"]
        if flow_type == FlowType.CLINICALS and _is_yes(row.emdan):
            short_message = EMDAN_SHORT_MESSAGE
        add("shortMessage", quote(short_message))
        add("subject", quote(short_message))

        ttl = parse_delay(row.ttl_value)
        add("ttl", str(ttl) if ttl else "10")
        add("retractRules", json.dumps(["ttlHasElapsed"]))
        add("vibrate", quote("short"))

        last_order = -1
        for position in range(1, MAX_CHAIN_LENGTH + 1):
            groups, roles = self._recipients_at(row, position, "")
            if groups:
                add("destinationName", quote("Group"), position - 1)
            elif roles:
                add("destinationName", quote(roles[0]["name"]), position - 1)
            elif not row.timing(position).strip():
                continue
            last_order = position - 1

        if flow_type == FlowType.CLINICALS and merged.no_caregiver_group:
            order = last_order + 1
            add("destinationName", quote(self._config.no_caregiver_destination_name), order)
            add("shortMessage", quote(NO_CAREGIVER_SHORT_MESSAGE), order)
            add("subject", quote(NO_CAREGIVER_SUBJECT), order)
        return params


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


_PREFIX_TO_TYPE: Dict[str, FlowType] = {
    prefix: flow_type for flow_type, prefix in _FLOW_PREFIX.items()
}

_RESPONSE_FROM_JSON: Dict[str, str] = {
    "accept/decline": "Accept",
    "accept/decline/call": "Accept, Call Back",
    "none": "No Response",
}


class JsonFlowReader:
    """Reads JSON delivery-flow documents into rows."""

    def read(
        self,
        file_path: Union[str, Path],
        default_type: FlowType = FlowType.NURSE_CALLS,
    ) -> Tuple[List[FlowRow], List[UnitRow]]:
        """Read a document from disk.

        Raises:
            JsonDocumentError: If the file is unreadable, not JSON, or not
                a delivery-flow document.
        """
        path = str(file_path)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except OSError as exc:
            raise JsonDocumentError(
                message=f"Cannot read JSON document: {exc.strerror or exc}",
                file_path=path,
            ) from exc
        except ValueError as exc:
            raise JsonDocumentError(
                message=f"Malformed JSON: {exc}", file_path=path,
            ) from exc
        return self.parse_document(payload, default_type, source=path)

    def parse_document(
        self,
        payload: Any,
        default_type: FlowType = FlowType.NURSE_CALLS,
        source: Optional[str] = None,
    ) -> Tuple[List[FlowRow], List[UnitRow]]:
        """Convert a decoded document into flow rows and unit rows."""
        if not isinstance(payload, dict) or not isinstance(
            payload.get("deliveryFlows", []), list,
        ):
            raise JsonDocumentError(
                message="Not a delivery-flow document: expected an object "
                        "with a deliveryFlows list",
                file_path=source,
            )

        definitions: Dict[str, Dict[str, Any]] = {}
        for definition in payload.get("alarmAlertDefinitions") or []:
            if isinstance(definition, dict) and definition.get("name"):
                definitions[str(definition["name"])] = definition

        rows: List[FlowRow] = []
        units: Dict[Tuple[str, str], UnitRow] = {}
        for flow in payload.get("deliveryFlows") or []:
            if not isinstance(flow, dict):
                continue
            flow_rows = self._parse_flow(flow, definitions, default_type)
            rows.extend(flow_rows)
            if flow_rows:
                self._collect_units(flow, flow_rows[0], units)

        logger.info(
            "Read JSON document %s: flows=%d, rows=%d, units=%d",
            source or "<memory>", len(payload.get("deliveryFlows") or []),
            len(rows), len(units),
        )
        return rows, list(units.values())

    # ------------------------------------------------------------------
    # Flow parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _flow_type(
        name: str,
        alarms: List[str],
        definitions: Dict[str, Dict[str, Any]],
        default_type: FlowType,
    ) -> FlowType:
        head = name.split("|", 1)[0].strip().upper()
        if head in _PREFIX_TO_TYPE:
            return _PREFIX_TO_TYPE[head]
        for alarm in alarms:
            declared = str(definitions.get(alarm, {}).get("type", ""))
            for flow_type in FlowType:
                if declared.lower() == flow_type.value.lower():
                    return flow_type
        return default_type

    @staticmethod
    def _config_group(name: str) -> str:
        parts = [p.strip() for p in name.split("|")]
        if len(parts) >= 4:
            return parts[3].split(" / ")[0].strip()
        return ""

    def _parse_flow(
        self,
        flow: Dict[str, Any],
        definitions: Dict[str, Dict[str, Any]],
        default_type: FlowType,
    ) -> List[FlowRow]:
        name = str(flow.get("name") or "")
        alarms = [str(a) for a in flow.get("alarmsAlerts") or [] if str(a).strip()]
        flow_type = self._flow_type(name, alarms, definitions, default_type)

        plain: Dict[str, str] = {}
        for param in flow.get("parameterAttributes") or []:
            if not isinstance(param, dict) or "destinationOrder" in param:
                continue
            key = str(param.get("name") or "")
            if key and key not in plain:
                plain[key] = unquote(param.get("value"))

        template = FlowRow(
            flow_type=flow_type,
            config_group=self._config_group(name),
            priority_raw=reverse_priority(flow.get("priority")),
        )
        interfaces = flow.get("interfaces") or []
        if interfaces and isinstance(interfaces[0], dict):
            template.device_a = reverse_interface(interfaces[0].get("componentName"))

        template.ringtone = plain.get("alertSound", "")
        rtype = plain.get("responseType", "")
        if rtype:
            template.response_options = _RESPONSE_FROM_JSON.get(rtype.lower(), rtype)
        decline = plain.get("declineCount", "")
        if "all recipients" in decline.lower():
            template.escalate_after = "All declines"
        elif rtype and rtype.lower() != "none":
            template.escalate_after = "1 decline"
        if "breakThrough" in plain:
            template.break_through_dnd = (
                "Yes" if plain["breakThrough"].lower() == "voceraanddevice" else "No"
            )
        if "enunciate" in plain:
            template.enunciate = "Yes" if plain["enunciate"].lower() == "true" else "No"
        template.ttl_value = plain.get("ttl", "")
        if flow_type == FlowType.CLINICALS and plain.get("shortMessage") == EMDAN_SHORT_MESSAGE:
            template.emdan = "Yes"

        self._apply_destinations(template, flow.get("destinations") or [])

        rows: List[FlowRow] = []
        for alarm in alarms:
            row = template.model_copy(deep=True)
            row.alarm_name = alarm
            values = definitions.get(alarm, {}).get("values") or []
            sending = ""
            if values and isinstance(values[0], dict):
                sending = str(values[0].get("value") or "")
            row.sending_name = sending or alarm
            rows.append(row)
        return rows

    @staticmethod
    def _apply_destinations(row: FlowRow, destinations: List[Any]) -> None:
        recipients: Dict[int, List[str]] = {}
        delays: Dict[int, int] = {}
        for dest in destinations:
            if not isinstance(dest, dict):
                continue
            if str(dest.get("destinationType", "")).lower() == "nodeliveries":
                continue
            try:
                position = int(dest.get("order", 0)) + 1
            except (TypeError, ValueError):
                continue
            if not 1 <= position <= MAX_CHAIN_LENGTH:
                continue
            names = recipients.setdefault(position, [])
            for group in dest.get("groups") or []:
                if isinstance(group, dict) and group.get("name"):
                    names.append(f"VGroup {group['name']}")
            for role in dest.get("functionalRoles") or []:
                if not isinstance(role, dict) or not role.get("name"):
                    continue
                if role.get("roomScoped") is False:
                    names.append(f"VAssign:{role['name']}")
                else:
                    names.append(f"VAssign:[Room] {role['name']}")
            try:
                delays.setdefault(position, int(dest.get("delayTime") or 0))
            except (TypeError, ValueError):
                delays.setdefault(position, 0)

        for position, names in recipients.items():
            if names:
                row.set_recipient(position, "\n".join(names))
            delay = delays.get(position, 0)
            row.set_timing(position, "Immediate" if delay == 0 else str(delay))

    @staticmethod
    def _collect_units(
        flow: Dict[str, Any],
        row: FlowRow,
        units: Dict[Tuple[str, str], UnitRow],
    ) -> None:
        no_care = ""
        for dest in flow.get("destinations") or []:
            if isinstance(dest, dict) and str(dest.get("destinationType", "")).lower() == "nodeliveries":
                for group in dest.get("groups") or []:
                    if isinstance(group, dict) and group.get("name"):
                        no_care = str(group["name"])
                        break

        for entry in flow.get("units") or []:
            if not isinstance(entry, dict):
                continue
            facility = str(entry.get("facilityName") or "").strip()
            name = str(entry.get("name") or "").strip()
            if not facility and not name:
                continue
            unit = units.get((facility, name))
            if unit is None:
                unit = UnitRow(facility=facility, unit_names=name)
                units[(facility, name)] = unit
            if row.config_group:
                field = {
                    FlowType.NURSE_CALLS: "nurse_group",
                    FlowType.CLINICALS: "clin_group",
                    FlowType.ORDERS: "orders_group",
                }[row.flow_type]
                current = [g.strip() for g in getattr(unit, field).split(",") if g.strip()]
                if row.config_group not in current:
                    current.append(row.config_group)
                    setattr(unit, field, ", ".join(current))
            if no_care and not unit.no_caregiver_group:
                unit.no_caregiver_group = no_care
