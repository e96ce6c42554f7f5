"""
Sub-record kinds.

Each kind knows its resource path, the flat form fields its edit form uses,
how to move between that form and the wire payload, which fields are
required, and which snapshot keys its latest record fills in.
"""
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from eyeexam.models.api import RecordPage
from eyeexam.models.schema import EYES, OTHER, eye_value
from eyeexam.services import eye_pair
from eyeexam.services.envelopes import unwrap_pagination_envelope, unwrap_paginator_envelope
from eyeexam.services.vocabulary import ACUITY_MEASURES, ADNEXA_PARTS, FUNDUS_PARTS, SLIT_LAMP_PARTS
from eyeexam.utils import is_blank_markup, is_time, to_float

EOM_OPTIONS = ("Normal", "Restricted", OTHER)
DILATED_OPTIONS = ("Yes", "No")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)


def _bool(value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    return None


def _list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def required_message(field: str) -> str:
    return f"The {field.replace('_', ' ')} field is required."


class RecordKind:
    """Base kind: flat record, form fields map 1:1 onto the wire payload."""

    name: str = ""
    path: str = ""
    label: str = ""
    form_keys: Tuple[str, ...] = ()
    required_keys: Tuple[str, ...] = ()
    page_unwrapper: Callable[..., RecordPage] = staticmethod(unwrap_pagination_envelope)

    @property
    def slug(self) -> str:
        return self.path.strip("/")

    def unwrap_page(self, body: Any, page: int, per_page: int) -> RecordPage:
        return self.page_unwrapper(body, page, per_page)

    def decode(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Wire record -> flat edit-form values."""
        record = record if isinstance(record, Mapping) else {}
        return {key: _text(record.get(key)) for key in self.form_keys}

    def encode(self, form: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
        """Flat edit-form values -> wire payload (without visit_id)."""
        keys = [k for k in self.form_keys if k in form] if partial else self.form_keys
        return {key: _text(form.get(key)) for key in keys}

    def validate(self, form: Mapping[str, Any], partial: bool = False) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        for key in self.required_keys:
            if partial and key not in form:
                continue
            if not _text(form.get(key)):
                errors[key] = required_message(key)
        return errors

    def snapshot_fields(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        return {}

    def group_keys(self, form: Mapping[str, Any]) -> List[str]:
        """Form keys that travel together with the keys present in ``form``.

        The wire payload nests these under one object, so a partial update
        touching any of them has to send all of them.
        """
        return []


class ComplaintKind(RecordKind):
    name = "complaint"
    path = "/complaints"
    label = "Complaint"
    form_keys = ("complaint",)

    def validate(self, form, partial=False):
        if partial and "complaint" not in form:
            return {}
        if is_blank_markup(form.get("complaint")):
            return {"complaint": required_message("complaint")}
        return {}

    def encode(self, form, partial=False):
        if partial and "complaint" not in form:
            return {}
        # editor markup is opaque; only surrounding whitespace is trimmed
        return {"complaint": _text(form.get("complaint"))}

    def snapshot_fields(self, record):
        return {"primary_complaint": record.get("complaint")}


class MedicalHistoryKind(RecordKind):
    name = "medical_history"
    path = "/medical-histories"
    label = "Medical History"
    form_keys = ("systemic_conditions", "allergies", "current_systemic_medication")
    list_keys = ("systemic_conditions", "allergies")

    def decode(self, record):
        return {
            "systemic_conditions": _list(record.get("systemic_conditions")),
            "allergies": _list(record.get("allergies")),
            "current_systemic_medication": _text(record.get("current_systemic_medication")),
        }

    def encode(self, form, partial=False):
        out = {}
        for key in self.form_keys:
            if partial and key not in form:
                continue
            out[key] = _list(form.get(key)) if key in self.list_keys else _text(form.get(key))
        return out

    def validate(self, form, partial=False):
        errors = {}
        for key in self.list_keys:
            value = form.get(key)
            if value is not None and not isinstance(value, (list, tuple)):
                errors[key] = f"The {key.replace('_', ' ')} field must be a list."
        return errors

    def snapshot_fields(self, record):
        return self.decode(record)


class OcularHistoryKind(RecordKind):
    name = "ocular_history"
    path = "/ocular-histories"
    label = "Ocular History"
    form_keys = ("current_ocular_medication", "current_contact_lens_use", "lens_type", "family_history")
    # the backend spells this field with the legacy typo
    WIRE_LENS_USE = "current_contact_lense_use"

    def decode(self, record):
        lens_use = record.get("current_contact_lens_use", record.get(self.WIRE_LENS_USE))
        return {
            "current_ocular_medication": _text(record.get("current_ocular_medication", record.get("current_oscular_medication"))),
            "current_contact_lens_use": bool(_bool(lens_use)),
            "lens_type": _text(record.get("lens_type")),
            "family_history": _list(record.get("family_history")),
        }

    def encode(self, form, partial=False):
        out = {}
        if not partial or "current_ocular_medication" in form:
            out["current_ocular_medication"] = _text(form.get("current_ocular_medication"))
        if not partial or "current_contact_lens_use" in form:
            out[self.WIRE_LENS_USE] = bool(_bool(form.get("current_contact_lens_use")))
        if not partial or "lens_type" in form:
            out["lens_type"] = _text(form.get("lens_type"))
        if not partial or "family_history" in form:
            out["family_history"] = _list(form.get("family_history"))
        return out

    def validate(self, form, partial=False):
        errors = {}
        if not partial or "family_history" in form:
            if not _list(form.get("family_history")):
                errors["family_history"] = "Please add at least one family history item"
        if _bool(form.get("current_contact_lens_use")) and not _text(form.get("lens_type")):
            if not partial or "lens_type" in form or "current_contact_lens_use" in form:
                errors["lens_type"] = "Lens type is required when contact lens use is selected"
        return errors

    def snapshot_fields(self, record):
        values = self.decode(record)
        lens_use = record.get("current_contact_lens_use", record.get(self.WIRE_LENS_USE))
        values["current_contact_lens_use"] = _bool(lens_use)
        return values


class CompositeKind(RecordKind):
    """Kinds whose wire payload groups sub-fields, e.g. ``{"eom": {"value", "gaze", "eye"}}``."""

    layout: Mapping[str, Sequence[str]] = {}

    def decode(self, record):
        record = record if isinstance(record, Mapping) else {}
        form = eye_pair.flatten_composite(record, self.layout)
        # tolerate records that already come back flat
        for key in form:
            if isinstance(record.get(key), (str, int, float)) and not isinstance(record.get(key), bool):
                form[key] = _text(record[key])
        return {k: _text(v) for k, v in form.items()}

    def _groups(self, form, partial):
        if not partial:
            return dict(self.layout)
        keys = set(form)
        return {
            group: members for group, members in self.layout.items()
            if keys & set(eye_pair.composite_keys({group: members}))
        }

    def encode(self, form, partial=False):
        stripped = {k: _text(v) for k, v in form.items()}
        return eye_pair.nest_composite(stripped, self._groups(form, partial))

    def group_keys(self, form):
        return eye_pair.composite_keys(self._groups(form, partial=True))


class VisualAcuityKind(CompositeKind):
    name = "visual_acuity"
    path = "/visual-acuities"
    label = "Visual Acuity"
    layout = {
        f"{prefix}_{eye}": ACUITY_MEASURES
        for prefix in ("distance", "near", "pupil_reaction")
        for eye in EYES
    }
    form_keys = tuple(eye_pair.composite_keys(layout))
    required_keys = form_keys

    def snapshot_fields(self, record):
        return self.decode(record)


class OcularMotilityKind(CompositeKind):
    name = "ocular_motility"
    path = "/ocular-motilities"
    label = "Ocular Motility"
    layout = {
        "eom": ("value", "gaze", "eye"),
        "hirschberg_test": ("value", "eye", "deviation"),
        "cover_uncover_test": ("value", "phoria", "tropia", "direction", "distance", "near"),
        "stereopsis": ("value", "test"),
    }
    form_keys = tuple(eye_pair.composite_keys(layout))
    required_keys = form_keys

    def validate(self, form, partial=False):
        errors = super().validate(form, partial)
        eom = _text(form.get("eom"))
        if eom and eom not in EOM_OPTIONS:
            errors["eom"] = "Invalid EOM selection"
        return errors

    def snapshot_fields(self, record):
        return self.decode(record)


class IntraocularPressureKind(CompositeKind):
    name = "intraocular_pressure"
    path = "/intraocular-pressures"
    label = "Intraocular Pressure"
    layout = {"method": ("value", "other")}
    scalar_keys = ("left_eye", "right_eye", "time_of_measurement")
    form_keys = scalar_keys + ("method", "method_other")
    required_keys = scalar_keys + ("method",)

    def decode(self, record):
        record = record if isinstance(record, Mapping) else {}
        method = record.get("method", record.get("methods"))
        form = {key: _text(record.get(key)) for key in self.scalar_keys}
        form.update(eye_pair.flatten_composite({"method": method}, self.layout))
        if isinstance(method, str):
            form["method"] = _text(method)
        return form

    def encode(self, form, partial=False):
        out = {key: _text(form.get(key)) for key in self.scalar_keys if not partial or key in form}
        if not partial or "method" in form or "method_other" in form:
            value = _text(form.get("method"))
            other = _text(form.get("method_other"))
            out["method"] = {"value": value, "other": other if value == OTHER else None}
        return out

    def validate(self, form, partial=False):
        errors = super().validate(form, partial)
        for key in ("left_eye", "right_eye"):
            if key not in errors and _text(form.get(key)) and to_float(form.get(key)) is None:
                errors[key] = f"The {key.replace('_', ' ')} pressure must be a number."
        tom = _text(form.get("time_of_measurement"))
        if "time_of_measurement" not in errors and tom and not is_time(tom):
            errors["time_of_measurement"] = "Time must be HH:mm (e.g. 14:30)"
        if _text(form.get("method")) == OTHER and not _text(form.get("method_other")):
            errors["method_other"] = "Please specify other method"
        return errors

    def snapshot_fields(self, record):
        form = self.decode(record)
        return {
            "iop_method": eye_value(form["method"], form["method_other"]),
            "right_eye": form["right_eye"],
            "left_eye": form["left_eye"],
            "time_of_measurement": form["time_of_measurement"],
        }


class EyePairKind(RecordKind):
    """Kinds made of ``{field: {od: {value, other}, os: {value, other}}}`` groups."""

    parts: Tuple[str, ...] = ()
    extras: Mapping[str, Sequence[str]] = {}
    snapshot_parts: Tuple[str, ...] = ()

    @property
    def form_keys(self):
        return tuple(eye_pair.pair_keys(self.parts, self.extras))

    def decode(self, record):
        return eye_pair.flatten(record, self.parts, self.extras)

    def _touched(self, form, partial):
        if not partial:
            return self.parts
        keys = set(form)
        return tuple(p for p in self.parts if keys & set(eye_pair.pair_keys((p,), self.extras)))

    def encode(self, form, partial=False):
        stripped = {k: _text(v) for k, v in form.items()}
        return eye_pair.nest(stripped, self._touched(form, partial), self.extras)

    def group_keys(self, form):
        return eye_pair.pair_keys(self._touched(form, partial=True), self.extras)

    def validate(self, form, partial=False):
        errors = {}
        for part in self._touched(form, partial):
            for eye in EYES:
                key = f"{part}_{eye}"
                value = _text(form.get(key))
                if not value:
                    errors[key] = f"{part.replace('_', ' ')} ({eye}) is required"
                elif value == OTHER and not _text(form.get(f"{key}_other")):
                    errors[f"{key}_other"] = 'Please specify details for "Other" option'
        return errors

    def snapshot_fields(self, record):
        return eye_pair.eye_values(record, self.snapshot_parts or self.parts)


class AdnexaExaminationKind(EyePairKind):
    name = "adnexa_examination"
    path = "/adnexa-examinations"
    label = "Adnexa Examination"
    parts = ADNEXA_PARTS


class SlitLampExaminationKind(EyePairKind):
    name = "slit_lamp_examination"
    path = "/slit-lamp-examinations"
    label = "Slit Lamp Examination"
    parts = ("lids", "lashes", "conjunctiva") + SLIT_LAMP_PARTS
    # lids, lashes and conjunctiva are reported from the adnexa examination
    snapshot_parts = SLIT_LAMP_PARTS


class FundusExaminationKind(EyePairKind):
    name = "fundus_examination"
    path = "/fundus-examinations"
    label = "Fundus Examination"
    parts = FUNDUS_PARTS
    extras = {"optic_disc": ("cupping",)}
    dilation_layout = {"dilated": ("value", "time", "drops")}

    @property
    def form_keys(self):
        return tuple(eye_pair.composite_keys(self.dilation_layout)) + super().form_keys

    def decode(self, record):
        form = eye_pair.flatten_composite(record, self.dilation_layout)
        form.update(super().decode(record))
        return form

    def encode(self, form, partial=False):
        out = super().encode(form, partial)
        keys = eye_pair.composite_keys(self.dilation_layout)
        if not partial or set(form) & set(keys):
            stripped = {k: _text(v) for k, v in form.items()}
            out.update(eye_pair.nest_composite(stripped, self.dilation_layout))
        return out

    def group_keys(self, form):
        keys = super().group_keys(form)
        dilation = eye_pair.composite_keys(self.dilation_layout)
        if set(form) & set(dilation):
            keys = dilation + keys
        return keys

    def validate(self, form, partial=False):
        errors = super().validate(form, partial)
        if partial and not set(form) & set(eye_pair.composite_keys(self.dilation_layout)):
            return errors
        dilated = _text(form.get("dilated"))
        if not dilated:
            errors["dilated"] = required_message("dilated")
        elif dilated not in DILATED_OPTIONS:
            errors["dilated"] = "Dilation status must be Yes or No"
        elif dilated == "Yes":
            time = _text(form.get("dilated_time"))
            if not time:
                errors["dilated_time"] = "Dilation time is required when dilated is Yes"
            elif not is_time(time):
                errors["dilated_time"] = "Dilation time must be HH:mm (e.g. 15:00)"
        return errors

    def snapshot_fields(self, record):
        values = super().snapshot_fields(record)
        dilation = eye_pair.flatten_composite(record, self.dilation_layout)
        values["dilated"] = dilation["dilated"]
        values["dilation_time"] = dilation["dilated_time"]
        values["dilation_drops_used"] = dilation["dilated_drops"]
        flat = super().decode(record)
        for eye in EYES:
            values[f"optic_disc_cupping_{eye}"] = flat[f"optic_disc_{eye}_cupping"]
        return values


class InitialImpressionKind(RecordKind):
    name = "initial_impression"
    path = "/initial-impressions"
    label = "Initial Impression"
    form_keys = ("primary_diagnosis", "plan")
    page_unwrapper = staticmethod(unwrap_paginator_envelope)

    def validate(self, form, partial=False):
        errors = {}
        for key, message in (("primary_diagnosis", "Primary diagnosis is required"), ("plan", "Management plan is required")):
            if partial and key not in form:
                continue
            if is_blank_markup(form.get(key)):
                errors[key] = message
        return errors

    def snapshot_fields(self, record):
        return {"primary_diagnosis": record.get("primary_diagnosis"), "plan": record.get("plan")}


KINDS: Dict[str, RecordKind] = {
    kind.name: kind
    for kind in (
        ComplaintKind(),
        MedicalHistoryKind(),
        OcularHistoryKind(),
        VisualAcuityKind(),
        OcularMotilityKind(),
        IntraocularPressureKind(),
        AdnexaExaminationKind(),
        SlitLampExaminationKind(),
        FundusExaminationKind(),
        InitialImpressionKind(),
    )
}
_BY_SLUG = {kind.slug: kind for kind in KINDS.values()}


def get_kind(name_or_slug: str) -> RecordKind:
    kind = KINDS.get(name_or_slug) or _BY_SLUG.get(name_or_slug)
    if kind is None:
        raise KeyError(name_or_slug)
    return kind
