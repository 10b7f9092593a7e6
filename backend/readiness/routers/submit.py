from __future__ import annotations
import json
import logging
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool, ValidationError, field_validator
from sqlalchemy.orm import Session

from ..db import get_db
from ..email_client import EmailClient
from ..emails import render_report_html, render_report_text, report_subject
from ..models import Submission, User
from ..openai_client import ReportClient
from ..pain_points import extract_pain_points
from ..prompt import build_report_prompt
from ..scoring import Answers, ScoreResult, normalize_answers, score_answers, tier_code
from ..settings import settings
from ..throttle import client_ip, submission_limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["assessment"])

REPORT_UNAVAILABLE = "AI report generation temporarily unavailable"

MSG_EMAIL_SENT = "Assessment completed successfully! AI report generated and sent to your email."
MSG_EMAIL_FAILED = "Assessment completed successfully! AI report generated. Email delivery issue - please contact support."

Q1Token = Literal["chatbots", "rpa", "ai_assistants", "qa_analytics", "none"]
Q2Choice = Literal["fully_integrated", "crm_dashboards", "separate_systems", "no_centralized"]
Q3Choice = Literal["fully_trained", "some_trained", "no_training_open", "resistant"]
Q4Choice = Literal["full_scalable", "extended_multi", "limited_scaling", "no_scalability"]
Q5Token = Literal["nps", "aht", "fcr", "csat", "agent_productivity", "none"]
Q6Token = Literal["iso_certifications", "penetration_testing", "industry_compliance", "none"]
Q7Choice = Literal["dedicated_budget", "pilot_budget", "interest_no_budget", "limited_engagement"]
Q8Token = Literal[
	"high_attrition", "scaling_bottlenecks", "sla_misses", "rising_costs",
	"outdated_systems", "lack_data", "compliance_risks",
]
Q9Choice = Literal["immediate", "medium_term", "long_term"]


class SubmissionRequest(BaseModel):
	model_config = ConfigDict(extra="forbid")

	email: EmailStr
	company: str = Field(max_length=100)
	consent: StrictBool
	sector: Optional[str] = Field(default=None, max_length=100)
	region: Optional[str] = Field(default=None, max_length=100)
	q1: List[Q1Token] = Field(min_length=1, max_length=5)
	q2: Q2Choice
	q3: Q3Choice
	q4: Q4Choice
	q5: List[Q5Token] = Field(min_length=1, max_length=6)
	q6: List[Q6Token] = Field(min_length=1, max_length=4)
	q7: Q7Choice
	q8: List[Q8Token] = Field(min_length=1, max_length=3)
	q9: Q9Choice

	@field_validator("email", mode="before")
	@classmethod
	def _trim_email(cls, value):
		if isinstance(value, str):
			value = value.strip()
			if len(value) > 254:
				raise ValueError("must be at most 254 characters")
		return value

	@field_validator("email")
	@classmethod
	def _lower_email(cls, value: str) -> str:
		return value.lower()

	@field_validator("company")
	@classmethod
	def _check_company(cls, value: str) -> str:
		value = value.strip()
		if not value:
			raise ValueError("must not be empty")
		return value

	def answers(self) -> Answers:
		return Answers(**self.model_dump(include={"sector", "region", "q1", "q2", "q3", "q4", "q5", "q6", "q7", "q8", "q9"}))


def _error(message: str, status_code: int, **extra) -> JSONResponse:
	return JSONResponse({"error": message, **extra}, status_code=status_code)


def itemize_errors(err) -> List[str]:
	items = []
	for e in err.errors():
		location = ".".join(str(part) for part in e.get("loc", ())) or "body"
		items.append(f"{location}: {e.get('msg', 'invalid value')}")
	return items


async def _generate_report(result: ScoreResult, answers: Answers) -> str:
	try:
		client = ReportClient()
	except ValueError as err:
		logger.error("Report generation skipped: %s", err)
		return REPORT_UNAVAILABLE
	try:
		return await client.generate(build_report_prompt(result, answers))
	except Exception:
		logger.exception("Report generation failed")
		return REPORT_UNAVAILABLE
	finally:
		await client.aclose()


async def _send_report_email(email: str, company: str, result: ScoreResult, report: str) -> bool:
	try:
		client = EmailClient()
	except ValueError as err:
		logger.error("Report email skipped: %s", err)
		return False
	try:
		await client.send(
			to_email=email,
			to_name=f"{company} Team",
			subject=report_subject(company),
			text=render_report_text(result, report, company),
			html=render_report_html(result, report, company),
		)
		return True
	except Exception:
		logger.exception("Report email delivery failed")
		return False
	finally:
		await client.aclose()


def _persist_submission(
	db: Session,
	payload: SubmissionRequest,
	answers: Answers,
	result: ScoreResult,
	report: str,
	pain_points: List[str],
	email_sent: bool,
) -> Optional[str]:
	try:
		user = db.query(User).filter(User.email == payload.email).first()
		if user is None:
			user = User(email=payload.email)
			db.add(user)
			db.flush()
		row = Submission(
			user_id=user.id,
			company=payload.company,
			answers=answers.model_dump(),
			score=result.score,
			tier=tier_code(result.tier),
			ai_report=report,
			pain_points=pain_points,
			emailed_at=datetime.utcnow() if email_sent else None,
			email_status="SENT" if email_sent else "FAILED",
		)
		db.add(row)
		db.commit()
		logger.info("Submission saved: %s", row.id)
		return row.id
	except Exception:
		db.rollback()
		logger.exception("Failed to persist submission")
		return None


async def handle_submission(request: Request, db: Session):
	decision = submission_limiter.hit(client_ip(request))
	if not decision.allowed:
		return JSONResponse(
			{"error": "Too many submissions. Please try again later.", "retryAfter": decision.retry_after},
			status_code=429,
			headers={"Retry-After": str(decision.retry_after)},
		)

	missing = settings.missing_submission_config()
	if missing:
		logger.error("Missing required configuration: %s", ", ".join(missing))
		return _error("Server configuration incomplete. Please contact support.", 500)

	declared = request.headers.get("content-length")
	if declared and declared.isdigit() and int(declared) > settings.max_payload_bytes:
		return _error("Payload too large", 413)
	body = await request.body()
	if len(body) > settings.max_payload_bytes:
		return _error("Payload too large", 413)

	try:
		data = json.loads(body)
	except ValueError:
		return _error("Invalid JSON payload", 400)
	if not isinstance(data, dict):
		return _error("Invalid submission data", 400, details=["body: must be a JSON object"])

	try:
		payload = SubmissionRequest.model_validate(data)
	except ValidationError as err:
		return _error("Invalid submission data", 400, details=itemize_errors(err))

	if payload.consent is not True:
		return _error("Consent is required to process your assessment", 400)

	answers = normalize_answers(payload.answers())
	result = score_answers(answers)
	if not 0 <= result.score <= result.max_score:
		logger.error("Score %s outside [0, %s]", result.score, result.max_score)
		return _error("Invalid assessment data", 400)
	pain_points = extract_pain_points(answers)

	report = await _generate_report(result, answers)
	email_sent = await _send_report_email(payload.email, payload.company, result, report)
	_persist_submission(db, payload, answers, result, report, pain_points, email_sent)

	return {
		"success": True,
		"result": result.model_dump(by_alias=True),
		"aiReport": report,
		"emailSent": email_sent,
		"message": MSG_EMAIL_SENT if email_sent else MSG_EMAIL_FAILED,
		"email": payload.email,
	}


@router.post("/submit")
async def submit(request: Request, db: Session = Depends(get_db)):
	try:
		return await handle_submission(request, db)
	except Exception:
		logger.exception("Assessment submission error")
		return _error("Internal server error", 500)
