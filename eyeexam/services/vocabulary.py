"""
Field vocabulary for the examination report.

Every known snapshot key is declared once in FIELDS and owned by exactly one
Section in SECTIONS; both the interactive view and the printable document
read their layout from this table.
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple

from eyeexam.models.schema import EYES, FieldSpec, FieldType, Section

T = FieldType

ACRONYMS = {
    "od": "OD",
    "os": "OS",
    "ucva": "UCVA",
    "scva": "SCVA",
    "bcva": "BCVA",
    "iop": "IOP",
    "eom": "EOM",
    "cct": "CCT",
}
ACRONYM_RX = re.compile(r"\b(" + "|".join(ACRONYMS) + r")\b", re.IGNORECASE)

ACUITY_MEASURES = ("ucva", "scva", "bcva")

ADNEXA_PARTS = ("lids", "lashes", "conjunctiva", "sclera", "lacrimal_system")
SLIT_LAMP_PARTS = ("cornea", "anterior_chamber", "iris", "pupil", "lens", "vitreous")
FUNDUS_PARTS = ("optic_disc", "macula", "vessels", "periphery")


def format_field_name(key: str) -> str:
    """snake_case key -> display label, e.g. distance_od_ucva -> Distance OD UCVA."""
    words = (key or "").replace("_", " ").split(" ")
    titled = " ".join(w[:1].upper() + w[1:].lower() for w in words)
    return ACRONYM_RX.sub(lambda m: ACRONYMS[m.group(1).lower()], titled)


def _pairs(parts: Iterable[str]) -> Tuple[str, ...]:
    return tuple(f"{part}_{eye}" for part in parts for eye in EYES)


def _acuity(prefix: str) -> Tuple[str, ...]:
    return tuple(f"{prefix}_{eye}_{m}" for eye in EYES for m in ACUITY_MEASURES)


SECTIONS: Tuple[Section, ...] = (
    Section("Patient History", (
        "primary_complaint",
        "current_ocular_medication",
        "current_systemic_medication",
        "current_contact_lens_use",
        "lens_type",
        "systemic_conditions",
        "allergies",
        "family_history",
    )),
    Section("Vital Signs", (
        "heart_rate",
        "temperature",
        "respiratory_rate",
        "oxygen_saturation",
        "blood_pressure",
    )),
    Section("Distance Visual Acuity", _acuity("distance"), "visualAcuityTable"),
    Section("Near Visual Acuity", _acuity("near"), "visualAcuityTable"),
    Section("Pupil Reaction", _acuity("pupil_reaction"), "visualAcuityTable"),
    Section("Ocular Motility", ("eom", "eom_gaze", "eom_eye")),
    Section("Alignment Tests", (
        "hirschberg_test",
        "hirschberg_test_eye",
        "hirschberg_test_deviation",
        "cover_uncover_test",
        "cover_uncover_test_phoria",
        "cover_uncover_test_tropia",
        "cover_uncover_test_direction",
        "cover_uncover_test_distance",
        "cover_uncover_test_near",
    )),
    Section("Stereopsis", ("stereopsis", "stereopsis_test")),
    Section("Intraocular Pressure", ("iop_method", "right_eye", "left_eye", "time_of_measurement")),
    Section("Anterior Segment", _pairs(ADNEXA_PARTS + SLIT_LAMP_PARTS), "eyePairTable"),
    Section("Dilation", ("dilated", "dilation_time", "dilation_drops_used")),
    Section("Posterior Segment", _pairs(("optic_disc", "optic_disc_cupping", "macula", "vessels", "periphery")), "eyePairTable"),
    Section("Diagnosis & Management", ("primary_diagnosis", "plan"), "richTextBlock"),
)

_TYPED: Dict[str, FieldSpec] = {
    "primary_complaint": FieldSpec("primary_complaint", T.RICH_TEXT),
    "current_contact_lens_use": FieldSpec("current_contact_lens_use", T.BOOLEAN),
    "systemic_conditions": FieldSpec("systemic_conditions", T.LIST),
    "allergies": FieldSpec("allergies", T.LIST),
    "family_history": FieldSpec("family_history", T.LIST),
    "heart_rate": FieldSpec("heart_rate", T.NUMERIC, unit="bpm"),
    "temperature": FieldSpec("temperature", T.NUMERIC, unit="°C"),
    "respiratory_rate": FieldSpec("respiratory_rate", T.NUMERIC, unit="breaths/min"),
    "oxygen_saturation": FieldSpec("oxygen_saturation", T.NUMERIC, unit="%"),
    "blood_pressure": FieldSpec("blood_pressure", T.TEXT, unit="mmHg"),
    "eom": FieldSpec("eom", T.ENUM),
    "hirschberg_test": FieldSpec("hirschberg_test", T.ENUM),
    "cover_uncover_test": FieldSpec("cover_uncover_test", T.ENUM),
    "stereopsis": FieldSpec("stereopsis", T.ENUM),
    "iop_method": FieldSpec("iop_method", T.ENUM, has_other=True),
    "right_eye": FieldSpec("right_eye", T.NUMERIC, unit="mmHg"),
    "left_eye": FieldSpec("left_eye", T.NUMERIC, unit="mmHg"),
    "dilated": FieldSpec("dilated", T.ENUM),
    "primary_diagnosis": FieldSpec("primary_diagnosis", T.RICH_TEXT),
    "plan": FieldSpec("plan", T.RICH_TEXT),
}
for _key in _pairs(ADNEXA_PARTS + SLIT_LAMP_PARTS + FUNDUS_PARTS):
    _TYPED[_key] = FieldSpec(_key, T.ENUM, has_other=True)


def _build_fields() -> Dict[str, FieldSpec]:
    fields: Dict[str, FieldSpec] = {}
    for section in SECTIONS:
        for key in section.fields:
            if key in fields:
                raise RuntimeError(f"field {key!r} is owned by more than one section")
            fields[key] = _TYPED.get(key, FieldSpec(key))
    return fields


FIELDS: Dict[str, FieldSpec] = _build_fields()
_OWNER: Dict[str, Section] = {key: s for s in SECTIONS for key in s.fields}


def sections_table() -> List[Section]:
    return list(SECTIONS)


def field_spec(key: str) -> FieldSpec:
    return FIELDS[key]


def section_of(key: str) -> Optional[Section]:
    return _OWNER.get(key)


def known_keys() -> List[str]:
    return list(FIELDS)
