"""Two-mode entity references: a linked master record or inline manual details."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, ClassVar, Mapping, Optional, Union

from .errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+]?[0-9\s\-\(\)]{7,15}$")

UNKNOWN_LABEL = "Unknown"
MANUAL_LABEL = "Manual Entry"
UNASSIGNED_LABEL = "Unassigned"
NOT_AVAILABLE = "N/A"


class SelectionMode(str, Enum):
    LINKED = "linked"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: "SelectionMode | str") -> "SelectionMode":
        if isinstance(value, SelectionMode):
            return value
        text = str(value or "").strip().lower()
        if text in ("linked", "auto"):
            return cls.LINKED
        if text == "manual":
            return cls.MANUAL
        raise ValidationError(f"Unknown selection mode: {value!r}", field="mode")


class TechnicianState(Enum):
    UNASSIGNED = "unassigned"


UNASSIGNED = TechnicianState.UNASSIGNED


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _check_contact(email: str | None, phone: str | None = None) -> None:
    if email and not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address", field="email")
    if phone and not PHONE_RE.match(phone):
        raise ValidationError("Please enter a valid phone number", field="phone")


@dataclass(frozen=True)
class CustomerDetails:
    """Customer captured by hand on the job instead of a customer record."""

    firstname: str | None = None
    lastname: str | None = None
    email: str | None = None
    phone: str | None = None

    def __post_init__(self) -> None:
        _check_contact(_clean(self.email), _clean(self.phone))


@dataclass(frozen=True)
class MachineDetails:
    """Machine captured by hand on the job instead of a fleet record."""

    machine_name: str | None = None
    machine_type: str | None = None
    machine_brand: str | None = None
    machine_model: str | None = None
    chassis_no: str | None = None
    plate_no: str | None = None
    running_hours: str | None = None
    service_area: str | None = None


@dataclass(frozen=True)
class TechnicianDetails:
    """Technician who is not a system user."""

    name: str | None = None
    email: str | None = None

    def __post_init__(self) -> None:
        _check_contact(_clean(self.email))


ManualDetails = Union[CustomerDetails, MachineDetails, TechnicianDetails]


def populated_fields(details: ManualDetails) -> dict[str, str]:
    """Return the non-blank fields of a manual details record."""

    out: dict[str, str] = {}
    for item in fields(details):
        value = _clean(getattr(details, item.name))
        if value is not None:
            out[item.name] = value
    return out


@dataclass(frozen=True)
class LinkedReference:
    id: str
    mode: ClassVar[SelectionMode] = SelectionMode.LINKED

    def __post_init__(self) -> None:
        if _clean(self.id) is None:
            raise ValidationError("linked entity requires an id", field="id")


@dataclass(frozen=True)
class ManualReference:
    data: ManualDetails
    mode: ClassVar[SelectionMode] = SelectionMode.MANUAL

    def __post_init__(self) -> None:
        if not populated_fields(self.data):
            raise ValidationError("manual entity requires at least one field", field="data")


ResolvedReference = Union[LinkedReference, ManualReference]
TechnicianReference = Union[LinkedReference, ManualReference, TechnicianState]
Lookup = Callable[[str], Optional[Mapping[str, Any]]]


@dataclass(frozen=True)
class EntityKind:
    """How one kind of entity names itself in master records and manual details."""

    name: str
    details_type: type
    record_name_fields: tuple[str, ...]
    manual_name_fields: tuple[str, ...]

    def details(self, data: ManualDetails | Mapping[str, Any]) -> ManualDetails:
        if isinstance(data, self.details_type):
            return data
        if not isinstance(data, Mapping):
            raise ValidationError(f"{self.name} details must be a mapping", field="data")
        known = {item.name for item in fields(self.details_type)}
        return self.details_type(**{k: _clean(v) for k, v in data.items() if k in known})


CUSTOMER = EntityKind(
    name="customer",
    details_type=CustomerDetails,
    record_name_fields=("prefix_name", "firstname", "lastname"),
    manual_name_fields=("firstname", "lastname"),
)
MACHINE = EntityKind(
    name="machine",
    details_type=MachineDetails,
    record_name_fields=("vehicle_name",),
    manual_name_fields=("machine_name",),
)
TECHNICIAN = EntityKind(
    name="technician",
    details_type=TechnicianDetails,
    record_name_fields=("first_name", "last_name"),
    manual_name_fields=("name",),
)


def resolve(
    mode: SelectionMode | str,
    linked_id: str | None = None,
    manual_data: ManualDetails | Mapping[str, Any] | None = None,
    kind: EntityKind | None = None,
) -> ResolvedReference:
    """Build a reference in exactly one mode; data supplied for the other mode is dropped."""

    selected = SelectionMode.parse(mode)
    if selected is SelectionMode.LINKED:
        return LinkedReference(id=_clean(linked_id) or "")
    if manual_data is None:
        raise ValidationError("manual entity requires at least one field", field="data")
    if kind is not None:
        manual_data = kind.details(manual_data)
    elif isinstance(manual_data, Mapping):
        raise ValidationError("an entity kind is required to read manual details", field="data")
    return ManualReference(data=manual_data)


def switch_mode(
    ref: ResolvedReference,
    mode: SelectionMode | str,
    linked_id: str | None = None,
    manual_data: ManualDetails | Mapping[str, Any] | None = None,
    kind: EntityKind | None = None,
) -> ResolvedReference:
    """Return a fresh reference for ``mode``.

    Keeping the same mode without new data returns ``ref`` untouched; any other
    call discards everything the previous reference held.
    """

    selected = SelectionMode.parse(mode)
    if selected is ref.mode and linked_id is None and manual_data is None:
        return ref
    return resolve(selected, linked_id, manual_data, kind)


def assign_technician(
    technician_id: str | None = None,
    manual: TechnicianDetails | Mapping[str, Any] | None = None,
) -> TechnicianReference:
    """Assign a system technician or a manual one; never both."""

    has_id = _clean(technician_id) is not None
    if has_id and manual is not None:
        raise ValidationError(
            "assign either a system technician or a manual technician, not both",
            field="technician",
        )
    if has_id:
        return LinkedReference(id=_clean(technician_id) or "")
    if manual is not None:
        return ManualReference(data=TECHNICIAN.details(manual))
    raise ValidationError(
        "Either system technician or manual technician must be provided",
        field="technician",
    )


def clear_technician() -> TechnicianReference:
    return UNASSIGNED


def is_assigned(ref: TechnicianReference | None) -> bool:
    return ref is not None and ref is not UNASSIGNED


def linked_id(ref: TechnicianReference | None) -> str | None:
    if isinstance(ref, LinkedReference):
        return ref.id
    return None


def _join(values: Any) -> str:
    return " ".join(part for part in (_clean(v) for v in values) if part)


def display_name(ref: TechnicianReference | None, lookup: Lookup | None, kind: EntityKind) -> str:
    """Human-readable name for a reference.

    Linked references are looked up; a miss falls back to ``"Unknown"``. Manual
    references join their name fields, then fall back to email, then to
    ``"Manual Entry"``.
    """

    if ref is None or ref is UNASSIGNED:
        return UNASSIGNED_LABEL if kind is TECHNICIAN else UNKNOWN_LABEL
    if isinstance(ref, LinkedReference):
        record = lookup(ref.id) if lookup is not None else None
        if not record:
            return UNKNOWN_LABEL
        name = _join(record.get(key) for key in kind.record_name_fields)
        return name or _clean(record.get("name")) or UNKNOWN_LABEL
    name = _join(getattr(ref.data, key, None) for key in kind.manual_name_fields)
    return name or _clean(getattr(ref.data, "email", None)) or MANUAL_LABEL


def plate_number(ref: ResolvedReference | None, lookup: Lookup | None) -> str:
    if isinstance(ref, LinkedReference):
        record = lookup(ref.id) if lookup is not None else None
        return _clean((record or {}).get("plate_number")) or NOT_AVAILABLE
    if isinstance(ref, ManualReference):
        return _clean(getattr(ref.data, "plate_no", None)) or NOT_AVAILABLE
    return NOT_AVAILABLE


def contact_details(ref: ResolvedReference | None, lookup: Lookup | None) -> dict[str, str | None]:
    """Phone and email for a customer reference, whichever mode it is in."""

    if isinstance(ref, LinkedReference):
        record = (lookup(ref.id) if lookup is not None else None) or {}
        return {"phone": _clean(record.get("phone")), "email": _clean(record.get("email"))}
    if isinstance(ref, ManualReference):
        return {
            "phone": _clean(getattr(ref.data, "phone", None)),
            "email": _clean(getattr(ref.data, "email", None)),
        }
    return {"phone": None, "email": None}


__all__ = [
    "CUSTOMER",
    "MACHINE",
    "TECHNICIAN",
    "UNASSIGNED",
    "CustomerDetails",
    "EntityKind",
    "LinkedReference",
    "Lookup",
    "MachineDetails",
    "ManualReference",
    "ResolvedReference",
    "SelectionMode",
    "TechnicianDetails",
    "TechnicianReference",
    "TechnicianState",
    "assign_technician",
    "clear_technician",
    "contact_details",
    "display_name",
    "is_assigned",
    "linked_id",
    "plate_number",
    "populated_fields",
    "resolve",
    "switch_mode",
]
