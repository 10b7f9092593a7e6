import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import Base, engine
from . import models  # noqa: F401
from .settings import settings
from .throttle import admin_limiter, login_tracker, submission_limiter
from .routers import health
from .routers import submit
from .routers import auth
from .routers import admin

logging.basicConfig(
	level=settings.log_level.upper(),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("readiness")

app = FastAPI(title="AI Readiness Assessment API")
app.include_router(health.router)
app.include_router(submit.router, prefix="/api")
app.include_router(auth.router, prefix="/api")
app.include_router(admin.router, prefix="/api")


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
	body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
	return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
	return JSONResponse({"error": "Invalid request data", "details": submit.itemize_errors(exc)}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
	logger.exception("Unhandled error on %s %s", request.method, request.url.path)
	return JSONResponse({"error": "Internal server error"}, status_code=500)


def sweep_counters() -> int:
	return (
		submission_limiter.sweep()
		+ admin_limiter.sweep()
		+ login_tracker.sweep()
		+ auth.csrf_store.sweep()
	)


_sweep_task: Optional[asyncio.Task] = None


async def _sweep_watcher():
	while True:
		await asyncio.sleep(settings.counter_sweep_seconds)
		try:
			removed = sweep_counters()
			if removed:
				logger.debug("Swept %d expired counter entries", removed)
		except Exception:
			logger.exception("Counter sweep failed")


@app.on_event("startup")
async def startup_event():
	global _sweep_task
	Base.metadata.create_all(bind=engine)
	_sweep_task = asyncio.create_task(_sweep_watcher())


@app.on_event("shutdown")
async def shutdown_event():
	if _sweep_task is not None:
		_sweep_task.cancel()
