import pytest
from fastapi.testclient import TestClient

from eyeexam.deps import get_patient_client, get_repositories
from eyeexam.errors import TransportError
from eyeexam.main import app
from eyeexam.services.repository import build_repositories
from tests.fakes import FakeEmrClient


@pytest.fixture
def fake():
    return FakeEmrClient()


@pytest.fixture
def client(fake):
    app.dependency_overrides[get_repositories] = lambda: build_repositories(fake)
    app.dependency_overrides[get_patient_client] = lambda: fake
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"
    assert "X-Request-ID" in res.headers


def test_create_and_list_records(client, fake):
    res = client.post("/visits/v1/records/complaints", json={"complaint": "<p>Itching</p>"})
    assert res.status_code == 201
    res = client.get("/visits/v1/records/complaint", params={"per_page": 5})
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 1
    assert body["per_page"] == 5
    assert body["items"][0]["visit_id"] == "v1"


def test_invalid_create_returns_field_errors(client, fake):
    res = client.post("/visits/v1/records/intraocular-pressures", json={"left_eye": "16"})
    assert res.status_code == 422
    errors = res.json()["errors"]
    assert set(errors) == {"right_eye", "time_of_measurement", "method"}
    assert fake.writes() == []


def test_unknown_kind_is_404(client):
    assert client.get("/visits/v1/records/refractions").status_code == 404


def test_update_form_and_delete(client, fake):
    record = fake.seed("/ocular-histories", {
        "visit_id": "v1", "current_ocular_medication": "", "current_contact_lense_use": True,
        "lens_type": "RGP", "family_history": ["Glaucoma"],
    })
    res = client.get(f"/visits/v1/records/ocular-histories/{record['id']}/form")
    assert res.status_code == 200
    assert res.json()["values"]["current_contact_lens_use"] is True

    res = client.patch(f"/visits/v1/records/ocular-histories/{record['id']}", json={"lens_type": "Soft"})
    assert res.status_code == 200
    assert res.json()["lens_type"] == "Soft"

    assert client.delete(f"/visits/v1/records/ocular-histories/{record['id']}").status_code == 204
    assert client.delete(f"/visits/v1/records/ocular-histories/{record['id']}").status_code == 404


def test_backend_failure_is_502(client, fake):
    fake.failures["/complaints"] = TransportError("Server Error", status_code=500)
    res = client.get("/visits/v1/records/complaints")
    assert res.status_code == 502
    assert res.json()["upstream_status"] == 500


def test_snapshot_and_reports(client, fake):
    fake.seed("/complaints", {"visit_id": "v1", "complaint": "<p>Blurred vision</p>"})
    fake.failures["/fundus-examinations"] = TransportError("Server Error", status_code=500)

    snapshot = client.get("/visits/v1/snapshot").json()
    assert snapshot["values"]["primary_complaint"] == "<p>Blurred vision</p>"
    assert snapshot["missing_kinds"] == ["fundus_examination"]

    report = client.get("/visits/v1/report", params={"patient_name": "Ada Obi"}).json()
    assert report["context"]["patient_name"] == "Ada Obi"
    history = report["sections"][0]
    assert history["name"] == "Patient History"
    assert not history["empty"]

    res = client.get("/visits/v1/report/print")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/html")
    assert "<p>Blurred vision</p>" in res.text


def test_consultation_report(client, fake):
    fake.examination_data = {"primary_diagnosis": "<p>Cataract</p>", "vitals": {"heart_rate": 70}}
    res = client.get("/consultations/c1/report/print")
    assert res.status_code == 200
    assert "<p>Cataract</p>" in res.text
    assert "70 bpm" in res.text


def test_order_preview(client):
    res = client.post("/orders/preview", json={
        "items": [
            {"id": "1", "name": "Atropine", "price": "4.10", "quantity": 2},
            {"id": "2", "name": "Tears", "price": "oops", "quantity": 0},
        ],
        "notes": "urgent",
    })
    assert res.status_code == 200
    body = res.json()
    assert body["total_amount"] == "8.20"
    assert body["items"][1]["quantity"] == 1


def test_order_preview_accepts_numeric_ids(client):
    res = client.post("/orders/preview", json={"items": [{"id": 7, "name": "Timolol", "price": 5, "quantity": 2}]})
    assert res.status_code == 200
    body = res.json()
    assert body["items"][0]["item_id"] == "7"
    assert body["total_amount"] == "10.00"
