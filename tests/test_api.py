# tests/test_api.py
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from parking_gateway import main
from parking_gateway.main import ParkingGateway
from parking_gateway.store import InMemoryDiscountTypeStore

from conftest import Recorder

TEMPLATE = json.dumps({
    "url": "https://api.park.example/discount",
    "body": {"plate": "{{plate}}", "vip": "{{vip}}"},
})


@pytest.fixture
def recorder():
    return Recorder(200, '{"info":{"plate":"粤B12345","discountcharge":120}}')


@pytest.fixture
def api(monkeypatch, recorder):
    gateway = ParkingGateway(InMemoryDiscountTypeStore(), transport=httpx.MockTransport(recorder))
    monkeypatch.setattr(main, "gateway", gateway)
    monkeypatch.setattr(main, "EXPECTED_API_KEY", "")
    with TestClient(main.app) as client:
        yield client


def test_health(api):
    r = api.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "discount_types": 2}


def test_list_discount_types(api):
    codes = [t["code"] for t in api.get("/discount-types").json()["discountTypes"]]
    assert codes == ["24hour", "5day"]


def test_submit_custom_template(api, recorder):
    r = api.put("/discount-types/24hour/custom", json={"requestTemplate": TEMPLATE})
    assert r.status_code == 200
    assert r.json()["useCustomRequest"] is True

    r = api.post("/submit", json={"plateNumber": "粤B12345", "discountTypeCode": "24hour", "note": "vip=1"})
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["discountInfo"]["discountcharge"] == 120
    assert "redirectUrl" not in data
    assert len(recorder.requests) == 1


def test_submit_reports_configuration_error(api, recorder):
    api.put("/discount-types/5day/custom", json={"requestTemplate": "not a template"})
    r = api.post("/submit", json={"plateNumber": "粤B12345", "discountTypeCode": "5day"})
    assert r.status_code == 200
    assert r.json()["errorCode"] == "CONFIG_ERROR"
    assert recorder.requests == []


def test_preview_builds_without_sending(api, recorder):
    r = api.post("/discount-types/24hour/preview", json={
        "requestTemplate": TEMPLATE,
        "plateNumber": "A12345",
        "note": "vip=2&#header{X-Test:1}",
    })
    assert r.status_code == 200
    data = r.json()
    assert data["method"] == "POST"
    assert data["url"] == "https://api.park.example/discount"
    assert data["headers"]["X-Test"] == "1"
    assert data["body"] == "plate=A12345&vip=2"
    assert recorder.requests == []


def test_preview_rejects_broken_template(api):
    r = api.post("/discount-types/24hour/preview", json={"requestTemplate": "nope"})
    assert r.status_code == 422
    assert "template parse failed" in r.json()["detail"]


def test_unknown_type_is_404(api):
    assert api.put("/discount-types/nope/custom", json={}).status_code == 404
    assert api.post("/discount-types/nope/preview", json={}).status_code == 404


def test_scan_url_update(api, recorder):
    recorder.status_code = 302
    recorder.text = ""
    recorder.headers = {"Location": "http://park.example/shop;jsessionid=A1B2?id=8&parkid=229"}
    r = api.post("/discount-types/5day/scan-url", json={"scanUrl": "http://park.example/scan"})
    assert r.status_code == 200
    assert r.json() == {"success": True, "jsessionid": "A1B2"}
    assert main.gateway.store.get_by_code("5day").jsessionid == "A1B2"


def test_api_key_required_when_configured(api, monkeypatch):
    monkeypatch.setattr(main, "EXPECTED_API_KEY", "secret")
    assert api.get("/discount-types").status_code == 401
    assert api.get("/discount-types", headers={"X-API-KEY": "secret"}).status_code == 200
    assert api.get("/health").status_code == 200


def test_console_entry_point_serves_the_app(monkeypatch):
    from parking_gateway import __main__ as entry

    calls = []
    monkeypatch.setattr(entry.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    entry.main()
    assert calls[0][0] is main.app
    assert calls[0][1]["host"] == entry.HOST
    assert calls[0][1]["port"] == entry.PORT
