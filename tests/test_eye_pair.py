from eyeexam.models.schema import Enumerated, Other
from eyeexam.services import eye_pair

NESTED = {
    "lids": {"od": {"value": "Normal", "other": ""}, "os": {"value": "Other", "other": "chalazion"}},
    "lashes": {"od": {"value": "Normal", "other": ""}, "os": {"value": "Normal", "other": ""}},
}


def test_flatten_names_value_and_other_keys():
    flat = eye_pair.flatten(NESTED, ("lids", "lashes"))
    assert flat["lids_od"] == "Normal"
    assert flat["lids_os"] == "Other"
    assert flat["lids_os_other"] == "chalazion"
    assert len(flat) == 8


def test_nest_inverts_flatten():
    flat = eye_pair.flatten(NESTED, ("lids", "lashes"))
    assert eye_pair.nest(flat, ("lids", "lashes")) == NESTED


def test_flatten_is_total_on_missing_and_null():
    flat = eye_pair.flatten({"lids": {"od": None}, "junk": 1}, ("lids",))
    assert flat == {"lids_od": "", "lids_od_other": "", "lids_os": "", "lids_os_other": ""}
    assert eye_pair.flatten(None, ("lids",))["lids_os"] == ""


def test_nest_ignores_unknown_keys():
    nested = eye_pair.nest({"lids_od": "Normal", "stray": "x"}, ("lids",))
    assert set(nested) == {"lids"}
    assert nested["lids"]["os"] == {"value": "", "other": ""}


def test_extras_add_members():
    nested = {"optic_disc": {"od": {"value": "Normal", "other": "", "cupping": "0.3"}}}
    flat = eye_pair.flatten(nested, ("optic_disc",), {"optic_disc": ("cupping",)})
    assert flat["optic_disc_od_cupping"] == "0.3"
    assert flat["optic_disc_os_cupping"] == ""


def test_composite_value_member_maps_to_group_key():
    layout = {"eom": ("value", "gaze", "eye")}
    flat = eye_pair.flatten_composite({"eom": {"value": "Restricted", "gaze": "Up", "eye": "OD"}}, layout)
    assert flat == {"eom": "Restricted", "eom_gaze": "Up", "eom_eye": "OD"}
    assert eye_pair.nest_composite(flat, layout) == {"eom": {"value": "Restricted", "gaze": "Up", "eye": "OD"}}
    assert eye_pair.composite_keys(layout) == ["eom", "eom_gaze", "eom_eye"]


def test_eye_values_builds_tagged_values():
    values = eye_pair.eye_values(dict(NESTED, iris={"od": "Normal"}), ("lids", "iris"))
    assert values["lids_od"] == Enumerated("Normal")
    assert values["lids_os"] == Other("chalazion")
    assert values["iris_od"] == Enumerated("Normal")
    assert values["iris_os"] is None


def test_flatten_inverts_nest():
    flat = {
        "lids_od": "Other", "lids_od_other": "notch", "lids_os": "Normal", "lids_os_other": "",
        "optic_disc_od": "Normal", "optic_disc_od_other": "", "optic_disc_od_cupping": "0.3",
        "optic_disc_os": "", "optic_disc_os_other": "", "optic_disc_os_cupping": "",
    }
    keys = ("lids", "optic_disc")
    extras = {"optic_disc": ("cupping",)}
    assert eye_pair.flatten(eye_pair.nest(flat, keys, extras), keys, extras) == flat
