from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import hmac
import logging
import secrets
import time

from fastapi import APIRouter, HTTPException, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, Field

from ..settings import settings
from ..throttle import admin_limiter, client_ip, login_tracker

logger = logging.getLogger(__name__)

CSRF_COOKIE = "admin_csrf"
ADMIN_ROLE = "admin"


def enforce_admin_rate_limit(request: Request) -> None:
	decision = admin_limiter.hit(client_ip(request))
	if not decision.allowed:
		raise HTTPException(
			status_code=429,
			detail={"error": "Too many requests", "retryAfter": decision.retry_after},
			headers={"Retry-After": str(decision.retry_after)},
		)


router = APIRouter(prefix="/admin", tags=["admin-auth"], dependencies=[Depends(enforce_admin_rate_limit)])
bearer_scheme = HTTPBearer(auto_error=False)


class CsrfStore:
	"""Issued CSRF tokens and their expiry; tokens stay valid for the whole window."""

	def __init__(self, ttl_seconds: float, clock=time.time) -> None:
		self.ttl_seconds = ttl_seconds
		self.clock = clock
		self._tokens: Dict[str, float] = {}

	def issue(self) -> str:
		token = secrets.token_urlsafe(32)
		self._tokens[token] = self.clock() + self.ttl_seconds
		return token

	def is_valid(self, token: str) -> bool:
		expires_at = self._tokens.get(token)
		return expires_at is not None and self.clock() < expires_at

	def sweep(self) -> int:
		now = self.clock()
		expired = [t for t, exp in self._tokens.items() if now >= exp]
		for t in expired:
			del self._tokens[t]
		return len(expired)

	def clear(self) -> None:
		self._tokens.clear()


csrf_store = CsrfStore(settings.csrf_token_ttl_minutes * 60)


class LoginRequest(BaseModel):
	password: str = Field(default="", max_length=256)
	csrf_token: str = Field(default="", alias="csrfToken", max_length=256)


class AdminClaims(BaseModel):
	sub: str
	role: str
	exp: int


def passwords_match(supplied: str, expected: str) -> bool:
	supplied_bytes = supplied.encode("utf-8")
	expected_bytes = expected.encode("utf-8")
	# Only the length can leak; content comparison is constant-time
	if len(supplied_bytes) != len(expected_bytes):
		return False
	return hmac.compare_digest(supplied_bytes, expected_bytes)


def create_access_token(expires_delta: Optional[timedelta] = None) -> str:
	now = datetime.now(timezone.utc)
	expire = now + (expires_delta or timedelta(hours=settings.admin_token_expire_hours))
	to_encode = {
		"sub": ADMIN_ROLE,
		"role": ADMIN_ROLE,
		"iss": settings.jwt_issuer,
		"aud": settings.jwt_audience,
		"iat": now,
		"exp": expire,
	}
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> AdminClaims:
	payload = jwt.decode(
		token,
		settings.jwt_secret_key,
		algorithms=[settings.jwt_algorithm],
		audience=settings.jwt_audience,
		issuer=settings.jwt_issuer,
	)
	if payload.get("role") != ADMIN_ROLE:
		raise JWTError("role claim mismatch")
	return AdminClaims(sub=payload.get("sub", ""), role=payload["role"], exp=int(payload["exp"]))


def get_current_admin(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> AdminClaims:
	if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
		raise HTTPException(status_code=401, detail="Authorization header required", headers={"WWW-Authenticate": "Bearer"})
	try:
		return decode_access_token(credentials.credentials)
	except JWTError:
		raise HTTPException(status_code=401, detail="Invalid or expired token", headers={"WWW-Authenticate": "Bearer"})


def _iso(ts: float) -> str:
	return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@router.get("/csrf")
async def issue_csrf_token():
	token = csrf_store.issue()
	response = JSONResponse({"csrfToken": token})
	response.set_cookie(
		CSRF_COOKIE,
		token,
		max_age=settings.csrf_token_ttl_minutes * 60,
		httponly=True,
		samesite="strict",
		secure=settings.cookie_secure,
		path="/",
	)
	return response


@router.post("/login")
async def login(req: LoginRequest, request: Request):
	ip = client_ip(request)

	blocked_until = login_tracker.blocked_until(ip)
	if blocked_until is not None:
		retry_after = max(1, int(blocked_until - login_tracker.clock()))
		return JSONResponse(
			{"error": "Too many failed attempts", "remainingAttempts": 0, "blockedUntil": _iso(blocked_until)},
			status_code=429,
			headers={"Retry-After": str(retry_after)},
		)

	cookie_token = request.cookies.get(CSRF_COOKIE)
	if not req.csrf_token or cookie_token != req.csrf_token or not csrf_store.is_valid(req.csrf_token):
		logger.warning("Admin login rejected: CSRF check failed for %s", ip)
		return JSONResponse({"error": "Invalid CSRF token"}, status_code=403)

	if not settings.admin_password:
		logger.error("ADMIN_PASSWORD is not configured")
		return JSONResponse({"error": "Admin access not configured"}, status_code=500)

	if not passwords_match(req.password, settings.admin_password):
		entry = login_tracker.record_failure(ip)
		remaining = login_tracker.remaining(ip)
		logger.warning("Admin login failed for %s (%d attempt(s))", ip, entry.attempts)
		body: Dict[str, Any] = {"error": "Invalid password", "remainingAttempts": remaining}
		if entry.blocked_until is not None:
			body["blockedUntil"] = _iso(entry.blocked_until)
		return JSONResponse(body, status_code=401)

	login_tracker.record_success(ip)
	logger.info("Admin login succeeded for %s", ip)
	return {"success": True, "token": create_access_token(), "remainingAttempts": settings.login_max_attempts}


@router.get("/verify")
async def verify(admin: AdminClaims = Depends(get_current_admin)):
	return {"authenticated": True, "role": admin.role, "expiresAt": _iso(admin.exp)}
