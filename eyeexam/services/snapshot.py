"""
Snapshot construction helpers: empty snapshots, per-field coercion, and the
normalisation of the consolidated examination-data payload.
"""
import logging
from typing import Any, Dict, Mapping, Optional

from eyeexam.models.schema import (
    Enumerated,
    ExaminationSnapshot,
    FieldSpec,
    FieldType,
    Other,
    SafeMarkup,
    eye_value,
    eye_value_parts,
)
from eyeexam.services.vocabulary import FIELDS

logger = logging.getLogger(__name__)

# legacy keys still emitted by the consolidated endpoint
ALIASES = {
    "complaint_details": "primary_complaint",
    "complaint": "primary_complaint",
    "current_oscular_medication": "current_ocular_medication",
    "current_contact_lense_use": "current_contact_lens_use",
    "methods": "iop_method",
    "method": "iop_method",
}


def empty_value(spec: FieldSpec) -> Any:
    return [] if spec.type is FieldType.LIST else None


def coerce(spec: FieldSpec, raw: Any, other: Any = None) -> Any:
    """Normalise a raw wire value to the snapshot representation for ``spec``."""
    if spec.type is FieldType.LIST:
        if raw is None or raw == "":
            return []
        items = raw if isinstance(raw, (list, tuple)) else [raw]
        return [str(i).strip() for i in items if i is not None and str(i).strip()]
    if raw is None:
        return None
    if spec.type is FieldType.BOOLEAN:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no"):
            return False
        return None
    if spec.has_other:
        if isinstance(raw, Mapping):
            return eye_value(raw.get("value"), raw.get("other"))
        return eye_value(raw, other)
    if spec.type is FieldType.RICH_TEXT:
        return SafeMarkup(raw) if raw != "" else None
    text = raw.strip() if isinstance(raw, str) else str(raw)
    return text or None


def empty_snapshot(visit_id: Optional[str] = None) -> ExaminationSnapshot:
    return ExaminationSnapshot(visit_id=visit_id, values={key: empty_value(spec) for key, spec in FIELDS.items()})


def merge(snapshot: ExaminationSnapshot, values: Mapping[str, Any]) -> ExaminationSnapshot:
    """Coerce and copy known keys from ``values``; unknown keys are dropped."""
    for key, raw in values.items():
        spec = FIELDS.get(key)
        if spec is None:
            logger.debug(f"ignoring unknown snapshot key {key}")
            continue
        snapshot.values[key] = coerce(spec, raw)
    return snapshot


def snapshot_from_examination_data(data: Mapping[str, Any], visit_id: Optional[str] = None) -> ExaminationSnapshot:
    """Normalise the consolidated ``examination_data`` payload into a snapshot.

    Empty strings become null, legacy key spellings are accepted, a nested
    ``vitals`` object is flattened and ``<field>_other`` companions are folded
    into tagged values.
    """
    flat: Dict[str, Any] = {}
    for key, value in (data or {}).items():
        if key == "vitals" and isinstance(value, Mapping):
            flat.update(value)
            continue
        flat[key] = value

    snapshot = empty_snapshot(visit_id)
    for key, value in flat.items():
        target = ALIASES.get(key, key)
        spec = FIELDS.get(target)
        if spec is None:
            continue
        # the canonical key wins over an alias when both are present
        if target != key and target in flat:
            continue
        if value == "":
            value = None
        snapshot.values[target] = coerce(spec, value, flat.get(f"{key}_other"))
    return snapshot


def snapshot_as_json(snapshot: ExaminationSnapshot) -> Dict[str, Any]:
    """JSON-friendly view of snapshot values; tagged values become ``{value, other}``."""
    out: Dict[str, Any] = {}
    for key, value in snapshot.values.items():
        if isinstance(value, (Enumerated, Other)):
            v, o = eye_value_parts(value)
            out[key] = {"value": v, "other": o or None}
        elif isinstance(value, SafeMarkup):
            out[key] = str(value)
        else:
            out[key] = value
    return out
