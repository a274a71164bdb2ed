"""
HTTP tests for the Flask app using the test client and fake model/store.
"""

import pytest
import requests

from app import create_app
from config_loader import EstimatorSettings
from conftest import FakeLLM, FakeStore
from estimator.pipeline import EstimateService
from services import vin_decoder
from services.llm_client import LLMTimeoutError

CFG = {
    "app": {"service_name": "Test Estimator"},
    "pricing": {"default_labor_rate": 65, "shop_supplies_percent": 7, "tax_rate_percent": 28},
    "llm": {"provider": "groq", "groq_api_key": "test-key"},
    "vin": {"max_retries": 0},
    "logging": {"level": "WARNING"},
}

VALID_BODY = {
    "customer": {"name": "Pat", "phone": "555-0100", "email": "pat@example.com"},
    "vehicle": "2015 Honda Civic",
    "description": "oil change",
    "laborRate": 80,
}


def _client(replies=None, store=None, image_reply=None, cfg=CFG):
    settings = EstimatorSettings.from_config(cfg)
    service = EstimateService(settings, FakeLLM(replies, image_reply=image_reply), store or FakeStore())
    app = create_app(cfg=cfg, service=service)
    app.testing = True
    return app.test_client(), service


def test_index_and_health():
    client, _ = _client()
    body = client.get("/").get_json()
    assert body == {"status": "ok", "service": "Test Estimator (groq-powered)"}
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.headers["X-Request-Id"]


def test_request_id_is_echoed():
    client, _ = _client()
    resp = client.get("/health", headers={"X-Request-Id": "abc-123"})
    assert resp.headers["X-Request-Id"] == "abc-123"


def test_config_endpoint():
    client, _ = _client()
    body = client.get("/api/config").get_json()
    assert body["defaultLaborRate"] == 65
    assert body["shopSuppliesPercent"] == 7
    assert body["taxRatePercent"] == 28
    assert body["provider"] == "groq"
    assert body["llmConfigured"] is True


def test_flat_rates_listing_and_query():
    client, _ = _client()
    listing = client.get("/api/flat-rates").get_json()["data"]
    assert [e["priority"] for e in listing] == list(range(len(listing)))
    patterns = [e["pattern"] for e in listing]
    assert patterns.index("oil change") < patterns.index("oil change and tire rotation")

    hit = client.get("/api/flat-rates", query_string={"q": "Replace front brake pads and rotors"}).get_json()
    assert hit["match"]["label"] == "brake pads and rotors front"
    assert hit["match"]["hours"] == {"min": 2.0, "max": 2.5}

    miss = client.get("/api/flat-rates", query_string={"q": "paint the roof"}).get_json()
    assert miss["match"] is None


@pytest.mark.parametrize(
    "body, field",
    [
        ({"description": "oil change"}, "customer"),
        ({"customer": {"name": ""}, "description": "oil change"}, "customer.name"),
        ({"customer": {"name": "Pat"}, "description": "ab"}, "description"),
        ({"customer": {"name": "Pat"}, "description": "oil change", "laborRate": -5}, "laborRate"),
        ({"customer": {"name": "Pat"}, "description": "oil change", "laborRate": "abc"}, "laborRate"),
    ],
)
def test_generate_estimate_validation(body, field):
    client, service = _client()
    resp = client.post("/api/generate-estimate", json=body)
    assert resp.status_code == 400
    data = resp.get_json()
    assert data["error"] == "Invalid request"
    assert field in [f["field"] for f in data["fields"]]
    assert service.llm.prompts == []


def test_generate_estimate_non_json_body():
    client, _ = _client()
    resp = client.post("/api/generate-estimate", data="not json", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json()["fields"][0]["field"] == "body"


def test_generate_estimate_success():
    reply = {"jobType": "Maintenance", "laborHours": 1.5, "parts": [{"name": "Oil + filter", "cost": 35}]}
    client, _ = _client([reply])
    resp = client.post("/api/generate-estimate", json=VALID_BODY)
    assert resp.status_code == 200
    body = resp.get_json()

    assert body["ok"] is True
    est = body["estimate"]
    assert est["laborHours"] == 0.5
    assert est["laborRate"] == 80
    assert est["laborCost"] == 40.0
    assert est["partsCost"] == 35
    assert est["shopSuppliesCost"] == 2.45
    assert est["subtotal"] == 77.45
    assert body["flatRate"] == {"label": "oil change", "hours": 0.5}
    assert body["customer"]["email"] == "pat@example.com"
    assert body["savedJob"]["id"] == 1
    assert body["ai_raw_text"]


def test_raw_text_not_echoed_when_disabled():
    cfg = dict(CFG, app={"echo_raw_text": False})
    client, _ = _client([{"laborHours": 1}], cfg=cfg)
    body = client.post("/api/generate-estimate", json=VALID_BODY).get_json()
    assert "ai_raw_text" not in body


def test_generate_estimate_bad_model_reply():
    client, _ = _client(["not json at all"])
    resp = client.post("/api/generate-estimate", json=VALID_BODY)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["state"] == "TEXT_GENERATION_FAILED"
    assert body["raw"] == "not json at all"


def test_generate_estimate_timeout():
    client, _ = _client([LLMTimeoutError("timed out")])
    resp = client.post("/api/generate-estimate", json=VALID_BODY)
    assert resp.status_code == 504
    assert "raw" not in resp.get_json()


def test_generate_estimate_persistence_failure():
    client, _ = _client([{"laborHours": 1}], store=FakeStore(fail_on="job"))
    resp = client.post("/api/generate-estimate", json=VALID_BODY)
    assert resp.status_code == 500
    assert resp.get_json()["state"] == "PERSISTENCE_FAILED"


def test_jobs_listing():
    store = FakeStore()
    client, _ = _client([{"laborHours": 1}, {"laborHours": 2}], store=store)
    client.post("/api/generate-estimate", json=VALID_BODY)
    client.post("/api/generate-estimate", json=dict(VALID_BODY, description="diagnose rattle"))
    data = client.get("/api/jobs").get_json()["data"]
    assert [j["id"] for j in data] == [2, 1]


def test_jobs_listing_failure():
    client, _ = _client(store=FakeStore(fail_on="list"))
    assert client.get("/api/jobs").status_code == 500


def test_analyze_photo():
    analysis = {"damageFound": True, "damageType": "Dent", "severity": "moderate", "location": "rear bumper"}
    client, _ = _client(image_reply=analysis)
    resp = client.post("/api/analyze-photo", json={"imageData": "data:image/jpeg;base64,AAAA"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["analysis"]["damageType"] == "Dent"
    assert body["description"].startswith("DAMAGE ANALYSIS:")


def test_analyze_photo_requires_image():
    client, _ = _client()
    assert client.post("/api/analyze-photo", json={}).status_code == 400


def test_vin_lookup_rejects_bad_vin():
    client, _ = _client()
    resp = client.get("/api/vin-lookup/TOOSHORT")
    assert resp.status_code == 400


def test_vin_lookup_timeout(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(vin_decoder.requests, "get", boom)
    client, _ = _client()
    assert client.get("/api/vin-lookup/1HGCM82633A004352").status_code == 504


def _app_with_table_init(init_tables):
    cfg = dict(CFG, init_tables=init_tables)
    settings = EstimatorSettings.from_config(cfg)
    service = EstimateService(settings, FakeLLM([{"laborHours": 1}] * 3), FakeStore())
    return create_app(cfg=cfg, service=service).test_client()


def test_tables_initialized_once_per_app():
    calls = []
    first = _app_with_table_init(lambda: calls.append("first"))
    second = _app_with_table_init(lambda: calls.append("second"))

    first.post("/api/generate-estimate", json=VALID_BODY)
    first.post("/api/generate-estimate", json=VALID_BODY)
    assert calls == ["first"]

    second.post("/api/generate-estimate", json=VALID_BODY)
    assert calls == ["first", "second"]


def test_table_init_failure_is_retried_on_next_request():
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("DATABASE_URL not configured")

    client = _app_with_table_init(flaky)
    assert client.post("/api/generate-estimate", json=VALID_BODY).status_code == 200
    client.post("/api/generate-estimate", json=VALID_BODY)
    client.post("/api/generate-estimate", json=VALID_BODY)
    assert len(attempts) == 2
