"""JSON endpoints: /api/score and /api/certinfo."""

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from models import CertificateIssue, ScoreRecord, User, db


@pytest.fixture
def app():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        db.session.add(
            User(
                username="apiuser",
                email="api@test.com",
                password_hash=generate_password_hash("Test123!"),
            )
        )
        db.session.commit()
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def test_get_score_requires_email(client):
    r = client.get("/api/score")
    assert r.status_code == 400
    assert r.get_json()["success"] is False


def test_get_score_unknown_user(client):
    r = client.get("/api/score?email=ghost@test.com")
    assert r.status_code == 404
    assert r.get_json() == {"success": False, "message": "User not found"}


def test_get_score_known_user_without_record(client):
    r = client.get("/api/score", query_string={"email": "api@test.com"})
    assert r.status_code == 200
    data = r.get_json()
    assert data["success"] is True
    assert data["userData"]["score"] is None


def test_post_then_get_score(client, app):
    r = client.post("/api/score", json={"email": "api@test.com", "score": 8})
    assert r.status_code == 200
    assert r.get_json()["success"] is True

    r = client.get("/api/score", query_string={"email": "api@test.com"})
    assert r.get_json()["userData"]["score"] == 8

    client.post("/api/score", json={"email": "api@test.com", "score": 4})
    with app.app_context():
        records = ScoreRecord.query.filter_by(email="api@test.com").all()
        assert [rec.score for rec in records] == [4]


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"email": "api@test.com"},
        {"email": "api@test.com", "score": "8"},
        {"email": "api@test.com", "score": -1},
        {"email": "api@test.com", "score": True},
        {"email": "", "score": 3},
    ],
)
def test_post_score_rejects_invalid_body(client, payload):
    r = client.post("/api/score", json=payload)
    assert r.status_code == 400
    assert r.get_json()["success"] is False


def test_certinfo_records_issue(client, app):
    r = client.post("/api/certinfo", json={"email": "api@test.com"})
    assert r.status_code == 200
    assert r.get_json() == {"success": True}
    with app.app_context():
        assert CertificateIssue.query.filter_by(email="api@test.com").count() == 1


def test_certinfo_errors(client):
    assert client.post("/api/certinfo", json={}).status_code == 400
    assert client.post("/api/certinfo", json={"email": "ghost@test.com"}).status_code == 404


def test_token_required_when_configured(app, client):
    app.config["API_TOKEN"] = "s3cret"
    r = client.get("/api/score", query_string={"email": "api@test.com"})
    assert r.status_code == 401

    r = client.get(
        "/api/score",
        query_string={"email": "api@test.com"},
        headers={"Authorization": "Bearer s3cret"},
    )
    assert r.status_code == 200


def test_api_is_csrf_exempt():
    app = create_app(
        {"TESTING": True, "WTF_CSRF_ENABLED": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"}
    )
    with app.app_context():
        db.create_all()
        db.session.add(User(username="csrf", email="csrf@test.com", password_hash="x"))
        db.session.commit()
    r = app.test_client().post("/api/score", json={"email": "csrf@test.com", "score": 2})
    assert r.status_code == 200
