import pytest

from eyeexam.errors import PartialAggregationError, TransportError
from eyeexam.models.schema import Enumerated, Other
from eyeexam.services.aggregator import build_snapshot, collect_snapshot, load_consolidated_snapshot, snapshot_for_report
from eyeexam.services.repository import build_repositories
from eyeexam.services.snapshot import snapshot_as_json, snapshot_from_examination_data
from eyeexam.services.vocabulary import FIELDS
from tests.fakes import FakeEmrClient


def pair(value, other=""):
    return {"od": {"value": value, "other": other}, "os": {"value": value, "other": other}}


@pytest.fixture
def fake():
    return FakeEmrClient()


def test_visit_without_records_gives_empty_snapshot(fake):
    snapshot = build_snapshot("v1", build_repositories(fake))
    assert set(snapshot.values) == set(FIELDS)
    assert snapshot["allergies"] == []
    assert snapshot["lids_od"] is None
    assert snapshot.sources == {}
    assert snapshot.missing_kinds == frozenset()


def test_latest_record_of_each_kind_is_merged(fake):
    fake.seed("/complaints", {"visit_id": "v1", "complaint": "<p>old</p>", "created_at": "2026-01-01 09:00:00"})
    fake.seed("/complaints", {"visit_id": "v1", "complaint": "<p>Blurred vision</p>", "created_at": "2026-01-01 11:00:00"})
    fake.seed("/adnexa-examinations", dict(
        {p: pair("Normal") for p in ("lashes", "conjunctiva", "sclera", "lacrimal_system")},
        visit_id="v1", lids={"od": {"value": "Other", "other": "chalazion"}, "os": {"value": "Normal", "other": ""}},
    ))
    fake.seed("/intraocular-pressures", {
        "visit_id": "v1", "left_eye": "16", "right_eye": "18", "time_of_measurement": "09:30",
        "method": {"value": "Goldmann", "other": None},
    })
    snapshot = build_snapshot("v1", build_repositories(fake))
    assert str(snapshot["primary_complaint"]) == "<p>Blurred vision</p>"
    assert snapshot["lids_od"] == Other("chalazion")
    assert snapshot["lids_os"] == Enumerated("Normal")
    assert snapshot["iop_method"] == Enumerated("Goldmann")
    assert snapshot["right_eye"] == "18"
    assert set(snapshot.sources) == {"complaint", "adnexa_examination", "intraocular_pressure"}


def test_slit_lamp_does_not_overwrite_adnexa_parts(fake):
    fake.seed("/adnexa-examinations", {"visit_id": "v1", "lids": pair("Normal")})
    fake.seed("/slit-lamp-examinations", {"visit_id": "v1", "lids": pair("Swollen"), "cornea": pair("Clear")})
    snapshot = build_snapshot("v1", build_repositories(fake))
    assert snapshot["lids_od"] == Enumerated("Normal")
    assert snapshot["cornea_os"] == Enumerated("Clear")


def test_fundus_fills_dilation_and_cupping(fake):
    fake.seed("/fundus-examinations", {
        "visit_id": "v1",
        "optic_disc": {"od": {"value": "Normal", "other": "", "cupping": "0.3"}, "os": {"value": "Normal", "other": "", "cupping": "0.4"}},
        "macula": pair("Normal"),
        "dilated": {"value": "Yes", "time": "15:00", "drops": "Tropicamide 1%"},
    })
    snapshot = build_snapshot("v1", build_repositories(fake))
    assert snapshot["optic_disc_cupping_os"] == "0.4"
    assert snapshot["dilated"] == "Yes"
    assert snapshot["dilation_time"] == "15:00"
    assert snapshot["vessels_od"] is None


def test_failing_kind_raises_partial_with_snapshot(fake):
    fake.seed("/complaints", {"visit_id": "v1", "complaint": "<p>Itching</p>"})
    fake.failures["/fundus-examinations"] = TransportError("Server Error", status_code=500)
    repos = build_repositories(fake)
    with pytest.raises(PartialAggregationError) as exc:
        build_snapshot("v1", repos)
    assert exc.value.failed_kinds == {"fundus_examination"}
    assert str(exc.value.snapshot["primary_complaint"]) == "<p>Itching</p>"

    snapshot = collect_snapshot("v1", repos)
    assert snapshot.missing_kinds == {"fundus_examination"}
    assert snapshot["macula_od"] is None


def test_consolidated_payload_normalisation():
    data = {
        "complaint_details": "<p>Pain</p>",
        "current_oscular_medication": "Latanoprost",
        "current_contact_lense_use": "false",
        "vitals": {"heart_rate": 72, "temperature": "", "blood_pressure": "120/80"},
        "iop_method": "Other",
        "iop_method_other": "Rebound",
        "lids_od": "Normal",
        "allergies": "",
        "unknown_key": "ignored",
    }
    snapshot = snapshot_from_examination_data(data, visit_id="v1")
    assert str(snapshot["primary_complaint"]) == "<p>Pain</p>"
    assert snapshot["current_ocular_medication"] == "Latanoprost"
    assert snapshot["current_contact_lens_use"] is False
    assert snapshot["heart_rate"] == "72"
    assert snapshot["temperature"] is None
    assert snapshot["iop_method"] == Other("Rebound")
    assert snapshot["lids_od"] == Enumerated("Normal")
    assert snapshot["allergies"] == []
    assert "unknown_key" not in snapshot.values


def test_canonical_key_wins_over_alias():
    snapshot = snapshot_from_examination_data({"primary_complaint": "<p>new</p>", "complaint_details": "<p>old</p>"})
    assert str(snapshot["primary_complaint"]) == "<p>new</p>"


def test_load_consolidated_snapshot(fake):
    fake.examination_data = {"primary_diagnosis": "<p>Cataract</p>"}
    snapshot = load_consolidated_snapshot(fake, "c1")
    assert str(snapshot["primary_diagnosis"]) == "<p>Cataract</p>"
    assert fake.calls[-1] == ("GET", "/patients/examination-data", {"consultation_id": "c1"})


def test_report_snapshot_falls_back_to_aggregation(fake):
    fake.seed("/complaints", {"visit_id": "v1", "complaint": "<p>Itching</p>"})
    snapshot = snapshot_for_report("v1", build_repositories(fake), fake, consultation_id="c1", prefer_consolidated=True)
    assert str(snapshot["primary_complaint"]) == "<p>Itching</p>"


def test_snapshot_as_json_flattens_tagged_values():
    snapshot = snapshot_from_examination_data({"lids_od": "Other", "lids_od_other": "notch", "plan": "<p>f/u</p>"})
    values = snapshot_as_json(snapshot)
    assert values["lids_od"] == {"value": "Other", "other": "notch"}
    assert values["plan"] == "<p>f/u</p>"
    assert values["lids_os"] is None


def test_snapshot_uses_newest_record_beyond_first_page(fake):
    for i in range(12):
        fake.seed("/complaints", {"visit_id": "v1", "complaint": f"<p>c{i}</p>"})
    snapshot = build_snapshot("v1", build_repositories(fake))
    assert str(snapshot["primary_complaint"]) == "<p>c11</p>"


def test_other_companion_ignored_unless_value_is_other():
    snapshot = snapshot_from_examination_data({"lids_od": "Normal", "lids_od_other": "x"})
    assert snapshot["lids_od"] == Enumerated("Normal")
