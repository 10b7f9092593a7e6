from __future__ import annotations
import csv
import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import delete
from sqlalchemy.orm import Session, selectinload

from ..db import get_db
from ..models import Submission, User
from .auth import AdminClaims, enforce_admin_rate_limit, get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(
	prefix="/admin",
	tags=["admin"],
	dependencies=[Depends(enforce_admin_rate_limit), Depends(get_current_admin)],
)

CSV_FIELDS = ["Date", "Email", "Company", "Score", "Tier", "Email Status", "Challenges", "AI Report"]


def _iso(value: Optional[datetime]) -> Optional[str]:
	return value.isoformat() if value else None


def serialize_submission(row: Submission, *, include_user: bool = True) -> Dict[str, Any]:
	data: Dict[str, Any] = {
		"id": row.id,
		"createdAt": _iso(row.created_at),
		"userId": row.user_id,
		"company": row.company,
		"answers": row.answers,
		"score": row.score,
		"tier": row.tier,
		"aiReport": row.ai_report,
		"painPoints": row.pain_points or [],
		"emailedAt": _iso(row.emailed_at),
		"emailStatus": row.email_status,
	}
	if include_user:
		data["user"] = {"email": row.user.email if row.user else None}
	return data


def serialize_user(row: User) -> Dict[str, Any]:
	return {
		"id": row.id,
		"email": row.email,
		"createdAt": _iso(row.created_at),
		"submissions": [serialize_submission(s, include_user=False) for s in row.submissions],
	}


def build_csv_bytes(rows: List[Submission]) -> bytes:
	buffer = io.StringIO()
	writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
	writer.writerow(CSV_FIELDS)
	for row in rows:
		writer.writerow([
			row.created_at.date().isoformat() if row.created_at else "",
			row.user.email if row.user else "",
			row.company,
			row.score,
			row.tier,
			row.email_status or "Not sent",
			"; ".join(row.pain_points or []),
			row.ai_report or "",
		])
	return buffer.getvalue().encode("utf-8")


def _submission_query(db: Session):
	return db.query(Submission).options(selectinload(Submission.user)).order_by(Submission.created_at.desc())


@router.get("/submissions")
def list_submissions(db: Session = Depends(get_db)):
	rows = _submission_query(db).all()
	logger.info("Admin fetched %d submissions", len(rows))
	return {"submissions": [serialize_submission(r) for r in rows]}


@router.get("/submissions/export.csv")
def export_submissions_csv(
	ids: Optional[List[str]] = Query(default=None),
	db: Session = Depends(get_db),
):
	query = _submission_query(db)
	if ids:
		query = query.filter(Submission.id.in_(ids))
	rows = query.all()
	scope = f"selected-submissions-{len(rows)}" if ids else "all-submissions"
	filename = f"ai-readiness-{scope}-{datetime.utcnow():%Y-%m-%d}.csv"
	return StreamingResponse(
		io.BytesIO(build_csv_bytes(rows)),
		media_type="text/csv; charset=utf-8",
		headers={"Content-Disposition": f'attachment; filename="{filename}"'},
	)


@router.delete("/submissions/{submission_id}")
def delete_submission(submission_id: str, admin: AdminClaims = Depends(get_current_admin), db: Session = Depends(get_db)):
	res = db.execute(delete(Submission).where(Submission.id == submission_id))
	if not res.rowcount:
		db.rollback()
		raise HTTPException(status_code=404, detail="Submission not found")
	db.commit()
	logger.info("Admin %s deleted submission %s", admin.sub, submission_id)
	return {"message": "Submission deleted successfully"}


@router.get("/users")
def list_users(db: Session = Depends(get_db)):
	rows = (
		db.query(User)
		.options(selectinload(User.submissions))
		.order_by(User.created_at.desc())
		.all()
	)
	return {"users": [serialize_user(r) for r in rows]}


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin: AdminClaims = Depends(get_current_admin), db: Session = Depends(get_db)):
	if db.get(User, user_id) is None:
		raise HTTPException(status_code=404, detail="User not found")
	# Two separate commits; a retry finishes a half-done delete
	res = db.execute(delete(Submission).where(Submission.user_id == user_id))
	db.commit()
	db.execute(delete(User).where(User.id == user_id))
	db.commit()
	logger.info("Admin %s deleted user %s and %d submission(s)", admin.sub, user_id, res.rowcount or 0)
	return {"message": "User and all associated submissions deleted successfully"}
