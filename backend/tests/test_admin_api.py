import csv
import io
from datetime import datetime, timedelta

from jose import jwt

from readiness.models import Submission, User
from readiness.routers.auth import create_access_token
from readiness.settings import settings
from readiness.throttle import admin_limiter

from conftest import ADMIN_PASSWORD


def _auth(token):
	return {"Authorization": f"Bearer {token}"}


def _csrf(client):
	return client.get("/api/admin/csrf").json()["csrfToken"]


def _seed(session_factory):
	with session_factory() as db:
		jane = User(email="jane@acme.com", created_at=datetime(2026, 1, 1))
		bob = User(email="bob@globex.com", created_at=datetime(2026, 1, 2))
		db.add_all([jane, bob])
		db.flush()
		rows = [
			Submission(
				user_id=jane.id, company="Acme", answers={"q2": "crm_dashboards"}, score=16,
				tier="GETTING_STARTED", ai_report="## Report\nLine, with \"quotes\"",
				pain_points=["Data Foundation", "Human Capital"], email_status="SENT",
				emailed_at=datetime(2026, 1, 3), created_at=datetime(2026, 1, 3),
			),
			Submission(
				user_id=jane.id, company="Acme", answers={}, score=25, tier="AI_ENHANCED",
				ai_report="r2", pain_points=[], email_status="FAILED", created_at=datetime(2026, 1, 5),
			),
			Submission(
				user_id=bob.id, company="Globex", answers={}, score=4, tier="NOT_READY",
				ai_report="r3", pain_points=["Risk Management"], created_at=datetime(2026, 1, 4),
			),
		]
		db.add_all(rows)
		db.commit()
		return {"jane": jane.id, "bob": bob.id, "submissions": [r.id for r in rows]}


def test_csrf_endpoint_sets_cookie(client):
	r = client.get("/api/admin/csrf")
	assert r.status_code == 200
	token = r.json()["csrfToken"]
	assert r.cookies.get("admin_csrf") == token
	assert "httponly" in r.headers["set-cookie"].lower()
	assert "samesite=strict" in r.headers["set-cookie"].lower()


def test_login_success(client):
	r = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD, "csrfToken": _csrf(client)})
	assert r.status_code == 200
	body = r.json()
	assert body["success"] is True
	claims = jwt.decode(
		body["token"], settings.jwt_secret_key, algorithms=["HS256"],
		audience=settings.jwt_audience, issuer=settings.jwt_issuer,
	)
	assert claims["role"] == "admin"
	assert claims["exp"] - claims["iat"] == 24 * 3600


def test_login_requires_csrf(client):
	r = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD})
	assert r.status_code == 403

	token = _csrf(client)
	r = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD, "csrfToken": token + "x"})
	assert r.status_code == 403

	# Body token without the matching cookie
	client.cookies.clear()
	r = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD, "csrfToken": token})
	assert r.status_code == 403


def test_csrf_failures_do_not_count_as_attempts(client):
	for _ in range(6):
		assert client.post("/api/admin/login", json={"password": "nope", "csrfToken": "bad"}).status_code == 403
	r = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD, "csrfToken": _csrf(client)})
	assert r.status_code == 200


def test_wrong_password_reports_remaining_attempts(client):
	token = _csrf(client)
	r = client.post("/api/admin/login", json={"password": "wrong", "csrfToken": token})
	assert r.status_code == 401
	assert r.json()["remainingAttempts"] == 4
	assert "token" not in r.json()


def test_fifth_failure_blocks_even_correct_password(client):
	token = _csrf(client)
	for expected in (4, 3, 2, 1):
		r = client.post("/api/admin/login", json={"password": "wrong", "csrfToken": token})
		assert r.json()["remainingAttempts"] == expected

	r = client.post("/api/admin/login", json={"password": "wrong", "csrfToken": token})
	assert r.status_code == 401
	assert r.json()["remainingAttempts"] == 0
	assert r.json()["blockedUntil"]

	r = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD, "csrfToken": token})
	assert r.status_code == 429
	assert r.json()["remainingAttempts"] == 0
	assert int(r.headers["Retry-After"]) > 0


def test_success_resets_failure_counter(client):
	token = _csrf(client)
	for _ in range(4):
		client.post("/api/admin/login", json={"password": "wrong", "csrfToken": token})
	assert client.post("/api/admin/login", json={"password": ADMIN_PASSWORD, "csrfToken": token}).status_code == 200

	r = client.post("/api/admin/login", json={"password": "wrong", "csrfToken": token})
	assert r.status_code == 401
	assert r.json()["remainingAttempts"] == 4


def test_login_without_configured_password(client, monkeypatch):
	monkeypatch.setattr(settings, "admin_password", None)
	r = client.post("/api/admin/login", json={"password": "anything", "csrfToken": _csrf(client)})
	assert r.status_code == 500


def test_admin_routes_require_token(client):
	for method, path in [
		("get", "/api/admin/submissions"),
		("get", "/api/admin/users"),
		("get", "/api/admin/verify"),
		("get", "/api/admin/submissions/export.csv"),
		("delete", "/api/admin/submissions/abc"),
		("delete", "/api/admin/users/abc"),
	]:
		assert getattr(client, method)(path).status_code == 401, path


def test_invalid_tokens_are_rejected(client):
	forged = jwt.encode(
		{"sub": "admin", "role": "admin", "iss": settings.jwt_issuer, "aud": settings.jwt_audience,
			"exp": datetime.utcnow() + timedelta(hours=1)},
		"some-other-secret",
		algorithm="HS256",
	)
	expired = create_access_token(expires_delta=timedelta(seconds=-10))
	wrong_role = jwt.encode(
		{"sub": "x", "role": "viewer", "iss": settings.jwt_issuer, "aud": settings.jwt_audience,
			"exp": datetime.utcnow() + timedelta(hours=1)},
		settings.jwt_secret_key,
		algorithm="HS256",
	)
	for token in ("garbage", forged, expired, wrong_role):
		assert client.get("/api/admin/submissions", headers=_auth(token)).status_code == 401


def test_verify(client, admin_token):
	r = client.get("/api/admin/verify", headers=_auth(admin_token))
	assert r.status_code == 200
	assert r.json()["authenticated"] is True
	assert r.json()["role"] == "admin"


def test_list_submissions_newest_first(client, admin_token, session_factory):
	seeded = _seed(session_factory)
	r = client.get("/api/admin/submissions", headers=_auth(admin_token))
	assert r.status_code == 200
	rows = r.json()["submissions"]
	assert [row["score"] for row in rows] == [25, 4, 16]
	assert rows[0]["user"]["email"] == "jane@acme.com"
	assert rows[2]["painPoints"] == ["Data Foundation", "Human Capital"]
	assert rows[2]["id"] == seeded["submissions"][0]


def test_delete_submission(client, admin_token, session_factory):
	seeded = _seed(session_factory)
	target = seeded["submissions"][2]
	r = client.delete(f"/api/admin/submissions/{target}", headers=_auth(admin_token))
	assert r.status_code == 200
	assert client.delete(f"/api/admin/submissions/{target}", headers=_auth(admin_token)).status_code == 404
	with session_factory() as db:
		assert db.query(Submission).count() == 2
		assert db.get(User, seeded["bob"]) is not None


def test_list_users_with_nested_submissions(client, admin_token, session_factory):
	_seed(session_factory)
	users = client.get("/api/admin/users", headers=_auth(admin_token)).json()["users"]
	assert [u["email"] for u in users] == ["bob@globex.com", "jane@acme.com"]
	jane = users[1]
	assert [s["score"] for s in jane["submissions"]] == [25, 16]


def test_delete_user_removes_submissions_first(client, admin_token, session_factory):
	seeded = _seed(session_factory)
	r = client.delete(f"/api/admin/users/{seeded['jane']}", headers=_auth(admin_token))
	assert r.status_code == 200
	with session_factory() as db:
		assert db.get(User, seeded["jane"]) is None
		assert db.query(Submission).filter(Submission.user_id == seeded["jane"]).count() == 0
		assert db.query(Submission).count() == 1
	assert client.delete(f"/api/admin/users/{seeded['jane']}", headers=_auth(admin_token)).status_code == 404


def test_csv_export(client, admin_token, session_factory):
	_seed(session_factory)
	r = client.get("/api/admin/submissions/export.csv", headers=_auth(admin_token))
	assert r.status_code == 200
	assert r.headers["content-type"].startswith("text/csv")
	assert "ai-readiness-all-submissions-" in r.headers["content-disposition"]

	rows = list(csv.reader(io.StringIO(r.text)))
	assert rows[0] == ["Date", "Email", "Company", "Score", "Tier", "Email Status", "Challenges", "AI Report"]
	assert len(rows) == 4
	oldest = rows[3]
	assert oldest[:7] == [
		"2026-01-03", "jane@acme.com", "Acme", "16", "GETTING_STARTED", "SENT", "Data Foundation; Human Capital",
	]
	assert oldest[7] == '## Report\nLine, with "quotes"'
	assert rows[2][5] == "Not sent"


def test_csv_export_subset(client, admin_token, session_factory):
	seeded = _seed(session_factory)
	ids = seeded["submissions"][:2]
	r = client.get(
		"/api/admin/submissions/export.csv",
		params=[("ids", ids[0]), ("ids", ids[1])],
		headers=_auth(admin_token),
	)
	rows = list(csv.reader(io.StringIO(r.text)))
	assert len(rows) == 3
	assert "selected-submissions-2" in r.headers["content-disposition"]


def test_admin_rate_limit(client, admin_token, monkeypatch):
	admin_limiter.clear()
	monkeypatch.setattr(admin_limiter, "limit", 2)
	assert client.get("/api/admin/verify", headers=_auth(admin_token)).status_code == 200
	assert client.get("/api/admin/verify", headers=_auth(admin_token)).status_code == 200
	r = client.get("/api/admin/verify", headers=_auth(admin_token))
	assert r.status_code == 429
	assert "Retry-After" in r.headers
	assert r.json()["error"] == "Too many requests"
	assert r.json()["retryAfter"] > 0
	# Throttling applies before authentication
	assert client.get("/api/admin/users").status_code == 429


def test_health(client, monkeypatch):
	assert client.get("/health").json()["status"] == "healthy"
	monkeypatch.setattr(settings, "sendgrid_api_key", None)
	body = client.get("/health").json()
	assert body["status"] == "unhealthy"
	assert "SENDGRID" not in str(body)


def test_rotating_forwarded_header_does_not_escape_lockout(client):
	token = _csrf(client)
	codes = [
		client.post(
			"/api/admin/login",
			json={"password": "wrong", "csrfToken": token},
			headers={"X-Forwarded-For": f"198.51.100.{i}"},
		).status_code
		for i in range(6)
	]
	assert codes == [401, 401, 401, 401, 401, 429]
	r = client.post(
		"/api/admin/login",
		json={"password": ADMIN_PASSWORD, "csrfToken": token},
		headers={"X-Real-IP": "203.0.113.77"},
	)
	assert r.status_code == 429


def test_malformed_login_body_is_itemized(client):
	r = client.post("/api/admin/login", json={"password": ["not", "a", "string"], "csrfToken": _csrf(client)})
	assert r.status_code == 400
	assert r.json()["error"] == "Invalid request data"
	assert any("password" in d for d in r.json()["details"])


def test_auth_errors_use_error_key(client, admin_token):
	r = client.get("/api/admin/submissions")
	assert r.status_code == 401
	assert r.json() == {"error": "Authorization header required"}
	r = client.delete("/api/admin/users/missing", headers=_auth(admin_token))
	assert r.status_code == 404
	assert r.json() == {"error": "User not found"}
