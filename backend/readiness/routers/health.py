from datetime import datetime, timezone

from fastapi import APIRouter

from ..settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
	# Only whether config is complete, never which keys are missing
	healthy = not settings.missing_submission_config()
	return {
		"status": "healthy" if healthy else "unhealthy",
		"timestamp": datetime.now(timezone.utc).isoformat(),
		"message": "Service is operational" if healthy else "Service configuration incomplete",
	}
