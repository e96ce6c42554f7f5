"""
Flat <-> nested transforms used by the edit forms.

Nested eye-pair shape::

    {"lids": {"od": {"value": "Normal", "other": ""}, "os": {"value": "Other", "other": "notch"}}}

Flat shape::

    {"lids_od": "Normal", "lids_od_other": "", "lids_os": "Other", "lids_os_other": "notch"}

Both directions are total: unknown keys are ignored, missing or null values
become "" and nothing here raises.
"""
from typing import Any, Dict, Mapping, Optional, Sequence

from eyeexam.models.schema import EYES, EyeValue, eye_value

PAIR_MEMBERS = ("value", "other")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _members(field: str, extras: Optional[Mapping[str, Sequence[str]]]) -> Sequence[str]:
    if extras and field in extras:
        return PAIR_MEMBERS + tuple(extras[field])
    return PAIR_MEMBERS


def _flat_key(field: str, eye: str, member: str) -> str:
    return f"{field}_{eye}" if member == "value" else f"{field}_{eye}_{member}"


def flatten(nested: Any, field_keys: Sequence[str], extras: Optional[Mapping[str, Sequence[str]]] = None) -> Dict[str, str]:
    """Nested eye-pair record -> flat form fields for ``field_keys``."""
    nested = _mapping(nested)
    flat: Dict[str, str] = {}
    for field in field_keys:
        pair = _mapping(nested.get(field))
        for eye in EYES:
            side = _mapping(pair.get(eye))
            for member in _members(field, extras):
                flat[_flat_key(field, eye, member)] = _text(side.get(member))
    return flat


def nest(flat: Any, field_keys: Sequence[str], extras: Optional[Mapping[str, Sequence[str]]] = None) -> Dict[str, Dict[str, Dict[str, str]]]:
    """Flat form fields -> nested eye-pair record for ``field_keys``."""
    flat = _mapping(flat)
    nested: Dict[str, Dict[str, Dict[str, str]]] = {}
    for field in field_keys:
        nested[field] = {
            eye: {member: _text(flat.get(_flat_key(field, eye, member))) for member in _members(field, extras)}
            for eye in EYES
        }
    return nested


def flatten_composite(nested: Any, layout: Mapping[str, Sequence[str]]) -> Dict[str, str]:
    """``{"eom": {"value": .., "gaze": ..}}`` -> ``{"eom": .., "eom_gaze": ..}``.

    The ``value`` member maps to the bare group key, every other member to
    ``<group>_<member>``.
    """
    nested = _mapping(nested)
    flat: Dict[str, str] = {}
    for group, members in layout.items():
        node = _mapping(nested.get(group))
        for member in members:
            key = group if member == "value" else f"{group}_{member}"
            flat[key] = _text(node.get(member))
    return flat


def nest_composite(flat: Any, layout: Mapping[str, Sequence[str]]) -> Dict[str, Dict[str, str]]:
    flat = _mapping(flat)
    nested: Dict[str, Dict[str, str]] = {}
    for group, members in layout.items():
        nested[group] = {
            member: _text(flat.get(group if member == "value" else f"{group}_{member}"))
            for member in members
        }
    return nested


def composite_keys(layout: Mapping[str, Sequence[str]]) -> list[str]:
    return [group if m == "value" else f"{group}_{m}" for group, members in layout.items() for m in members]


def pair_keys(field_keys: Sequence[str], extras: Optional[Mapping[str, Sequence[str]]] = None) -> list[str]:
    return [_flat_key(f, eye, m) for f in field_keys for eye in EYES for m in _members(f, extras)]


def eye_values(nested: Any, field_keys: Sequence[str]) -> Dict[str, Optional[EyeValue]]:
    """Nested eye-pair record -> ``{"<field>_od": EyeValue | None, ...}`` for the snapshot."""
    nested = _mapping(nested)
    out: Dict[str, Optional[EyeValue]] = {}
    for field in field_keys:
        pair = _mapping(nested.get(field))
        for eye in EYES:
            side = pair.get(eye)
            if isinstance(side, Mapping):
                out[f"{field}_{eye}"] = eye_value(side.get("value"), side.get("other"))
            else:
                # some records carry the bare string per eye
                out[f"{field}_{eye}"] = eye_value(side)
    return out
