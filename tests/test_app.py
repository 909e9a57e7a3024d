import routers.public as public_routes
from responses import api_response, error_response

from conftest import API


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "UniConnect API is running"}
    assert client.get("/health").json() == {"status": "healthy"}


def test_database_health(client, monkeypatch):
    ok = client.get("/health/db")
    assert ok.status_code == 200
    assert ok.json()["data"] == {"database": "connected"}

    monkeypatch.setattr(public_routes, "check_database", lambda: False)
    down = client.get("/health/db")
    assert down.status_code == 503
    assert down.json()["success"] is False
    assert down.json()["statusCode"] == 503


def test_validation_errors_use_error_envelope(client):
    response = client.post(f"{API}/auth/login", json={"email": "not-an-email"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["statusCode"] == 400
    assert body["message"] == "Validation failed"
    assert any(err.startswith("email:") for err in body["errors"])
    assert any(err.startswith("password:") for err in body["errors"])


def test_unknown_route_uses_error_envelope(client):
    response = client.get(f"{API}/nope")
    assert response.status_code == 404
    assert response.json() == {"success": False, "statusCode": 404, "message": "Not Found", "errors": []}


def test_cors_allows_local_frontend(client):
    response = client.options(
        f"{API}/events",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "GET"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert response.headers["access-control-allow-credentials"] == "true"


def test_envelope_helpers():
    ok = api_response(201, {"id": 1}, "Created")
    assert ok.status_code == 201
    assert ok.body == b'{"success":true,"statusCode":201,"data":{"id":1},"message":"Created"}'

    failed = error_response(409, "Conflict", ["duplicate"])
    assert failed.body == b'{"success":false,"statusCode":409,"message":"Conflict","errors":["duplicate"]}'
