from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from .db import Base


def _new_id() -> str:
	return uuid.uuid4().hex


class User(Base):
	__tablename__ = "users"
	id = Column(String(32), primary_key=True, default=_new_id)
	email = Column(String(254), unique=True, index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	submissions = relationship(
		"Submission",
		back_populates="user",
		order_by="Submission.created_at.desc()",
	)


class Submission(Base):
	__tablename__ = "submissions"
	id = Column(String(32), primary_key=True, default=_new_id)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
	# No ON DELETE CASCADE: submissions are removed explicitly before their user
	user_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
	company = Column(String(100), nullable=False)
	answers = Column(JSON, nullable=False)
	score = Column(Integer, nullable=False)
	tier = Column(String(32), nullable=False)  # AI_ENHANCED | GETTING_STARTED | NOT_READY
	ai_report = Column(Text, nullable=False, default="")
	pain_points = Column(JSON, nullable=False, default=list)
	emailed_at = Column(DateTime, nullable=True)
	email_status = Column(String(16), nullable=True)  # SENT | FAILED

	user = relationship("User", back_populates="submissions")
