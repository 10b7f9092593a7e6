from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from readiness.db import Base, get_db
from readiness.main import app
from readiness.settings import settings
from readiness.throttle import admin_limiter, login_tracker, submission_limiter
from readiness.routers import auth as auth_router
from readiness.routers import submit as submit_router


ADMIN_PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def reset_counters():
	for counter in (submission_limiter, admin_limiter, login_tracker, auth_router.csrf_store):
		counter.clear()
	yield
	for counter in (submission_limiter, admin_limiter, login_tracker, auth_router.csrf_store):
		counter.clear()


@pytest.fixture
def session_factory():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	Base.metadata.create_all(bind=engine)
	factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
	yield factory
	Base.metadata.drop_all(bind=engine)
	engine.dispose()


@pytest.fixture
def configured(monkeypatch):
	monkeypatch.setattr(settings, "openai_api_key", "sk-test")
	monkeypatch.setattr(settings, "sendgrid_api_key", "SG.test")
	monkeypatch.setattr(settings, "sendgrid_from_email", "reports@example.com")
	monkeypatch.setattr(settings, "admin_password", ADMIN_PASSWORD)
	monkeypatch.setattr(settings, "jwt_secret_key", "test-secret")


@pytest.fixture
def collaborators(monkeypatch):
	"""Replace the report and email providers with in-process fakes."""
	state = SimpleNamespace(
		report="## Executive Summary\nYour **data** foundation is solid.\n\n- Act on KPIs",
		report_error=None,
		email_error=None,
		prompts=[],
		emails=[],
	)

	class FakeReportClient:
		def __init__(self, *args, **kwargs):
			pass

		async def generate(self, prompt):
			state.prompts.append(prompt)
			if state.report_error is not None:
				raise state.report_error
			return state.report

		async def aclose(self):
			pass

	class FakeEmailClient:
		def __init__(self, *args, **kwargs):
			pass

		async def send(self, **kwargs):
			if state.email_error is not None:
				raise state.email_error
			state.emails.append(kwargs)

		async def aclose(self):
			pass

	monkeypatch.setattr(submit_router, "ReportClient", FakeReportClient)
	monkeypatch.setattr(submit_router, "EmailClient", FakeEmailClient)
	return state


@pytest.fixture
def client(session_factory, configured, collaborators):
	def override_get_db():
		db = session_factory()
		try:
			yield db
		finally:
			db.close()

	app.dependency_overrides[get_db] = override_get_db
	yield TestClient(app)
	app.dependency_overrides.clear()


@pytest.fixture
def make_payload():
	def _make(**overrides):
		payload = {
			"email": "jane.doe@acme.com",
			"company": "Acme Corp",
			"consent": True,
			"sector": "healthcare",
			"region": "na",
			"q1": ["chatbots", "rpa"],
			"q2": "crm_dashboards",
			"q3": "some_trained",
			"q4": "extended_multi",
			"q5": ["nps", "csat"],
			"q6": ["iso_certifications"],
			"q7": "interest_no_budget",
			"q8": ["sla_misses"],
			"q9": "immediate",
		}
		payload.update(overrides)
		return payload
	return _make


@pytest.fixture
def admin_token(client):
	csrf = client.get("/api/admin/csrf").json()["csrfToken"]
	r = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD, "csrfToken": csrf})
	assert r.status_code == 200
	return r.json()["token"]
