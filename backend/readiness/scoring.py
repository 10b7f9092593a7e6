from __future__ import annotations
import re
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field


TIER_TOP = "AI-Enhanced"
TIER_MIDDLE = "Getting Started"
TIER_BOTTOM = "Not Ready Yet"

# Lower bound (inclusive) of each tier, checked top-down
TIER_THRESHOLDS = [(21, TIER_TOP), (11, TIER_MIDDLE)]

TIER_CODES: Dict[str, str] = {
	TIER_TOP: "AI_ENHANCED",
	TIER_MIDDLE: "GETTING_STARTED",
	TIER_BOTTOM: "NOT_READY",
}

NONE_TOKEN = "none"

SECTION_LABELS: Dict[str, str] = {
	"s1": "Technology Infrastructure",
	"s2": "Data Foundation",
	"s3": "Human Capital",
	"s4": "Strategic Planning",
	"s5": "Measurement & Analytics",
	"s6": "Risk Management",
	"s7": "Organizational Support",
}

SECTION_MAX: Dict[str, int] = {"s1": 6, "s2": 4, "s3": 4, "s4": 4, "s5": 3, "s6": 4, "s7": 4}

MAX_SCORE = sum(SECTION_MAX.values())  # 29

# Multi-select sections: points per selected token, summed then capped
Q1_POINTS = {"chatbots": 2, "rpa": 2, "ai_assistants": 2, "qa_analytics": 2}
Q5_POINTS = {"nps": 1, "aht": 1, "fcr": 1, "csat": 1, "agent_productivity": 1}
Q6_POINTS = {"iso_certifications": 2, "penetration_testing": 2, "industry_compliance": 2}

# Single-select sections: one lookup, unknown -> 0
Q2_POINTS = {"fully_integrated": 4, "crm_dashboards": 2, "separate_systems": 1, "no_centralized": 0}
Q3_POINTS = {"fully_trained": 4, "some_trained": 2, "no_training_open": 1, "resistant": 0}
Q4_POINTS = {"full_scalable": 4, "extended_multi": 2, "limited_scaling": 1, "no_scalability": 0}
Q7_POINTS = {"dedicated_budget": 4, "pilot_budget": 3, "interest_no_budget": 2, "limited_engagement": 0}

MULTI_FIELDS = ("q1", "q5", "q6", "q8")
SINGLE_FIELDS = ("q2", "q3", "q4", "q7", "q9")


class Answers(BaseModel):
	"""Answer set as consumed by scoring, pain-point extraction and the prompt.

	Context fields (sector, region) and q8/q9 are carried for the report
	narrative only and never contribute points.
	"""
	sector: Optional[str] = None
	region: Optional[str] = None
	q1: List[str] = Field(default_factory=list)
	q2: Optional[str] = None
	q3: Optional[str] = None
	q4: Optional[str] = None
	q5: List[str] = Field(default_factory=list)
	q6: List[str] = Field(default_factory=list)
	q7: Optional[str] = None
	q8: List[str] = Field(default_factory=list)
	q9: Optional[str] = None


class SectionScore(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: str
	label: str
	score: int
	max: int
	pct: int


class ScoreResult(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	score: int
	max_score: int = Field(alias="maxScore")
	overall_pct: int = Field(alias="overallPct")
	tier: str
	breakdown: Dict[str, int]
	breakdown_max: Dict[str, int] = Field(alias="breakdownMax")
	breakdown_pct: Dict[str, int] = Field(alias="breakdownPct")
	sections: List[SectionScore]


def norm(value: Optional[str]) -> str:
	text = (value or "").lower().strip()
	text = re.sub(r"[^a-z0-9]+", "_", text)
	return text.strip("_")


def clean_multi(values: Optional[Iterable[str]]) -> List[str]:
	"""De-duplicate (first occurrence wins) and apply "none" exclusivity."""
	seen: List[str] = []
	for value in values or []:
		token = norm(value)
		if token and token not in seen:
			seen.append(token)
	if NONE_TOKEN in seen and len(seen) > 1:
		return [NONE_TOKEN]
	return seen


def normalize_answers(answers: Answers) -> Answers:
	updates = {field: clean_multi(getattr(answers, field)) for field in MULTI_FIELDS}
	return answers.model_copy(update=updates)


def _pct(part: int, maximum: int) -> int:
	if maximum <= 0:
		return 0
	# Round half up
	return int(part * 100 / maximum + 0.5)


def _multi_points(tokens: List[str], table: Dict[str, int], cap: int) -> int:
	return min(sum(table.get(token, 0) for token in tokens), cap)


def _single_points(token: Optional[str], table: Dict[str, int]) -> int:
	return table.get(norm(token), 0)


def tier_for(score: int) -> str:
	for threshold, label in TIER_THRESHOLDS:
		if score >= threshold:
			return label
	return TIER_BOTTOM


def tier_code(tier: str) -> str:
	return TIER_CODES.get(tier, TIER_CODES[TIER_BOTTOM])


def score_answers(answers: Answers) -> ScoreResult:
	a = normalize_answers(answers)

	breakdown = {
		"s1": _multi_points(a.q1, Q1_POINTS, SECTION_MAX["s1"]),
		"s2": _single_points(a.q2, Q2_POINTS),
		"s3": _single_points(a.q3, Q3_POINTS),
		"s4": _single_points(a.q4, Q4_POINTS),
		"s5": _multi_points(a.q5, Q5_POINTS, SECTION_MAX["s5"]),
		"s6": _multi_points(a.q6, Q6_POINTS, SECTION_MAX["s6"]),
		"s7": _single_points(a.q7, Q7_POINTS),
	}
	total = sum(breakdown.values())
	breakdown_pct = {sid: _pct(points, SECTION_MAX[sid]) for sid, points in breakdown.items()}
	sections = [
		SectionScore(
			id=sid,
			label=SECTION_LABELS[sid],
			score=breakdown[sid],
			max=SECTION_MAX[sid],
			pct=breakdown_pct[sid],
		)
		for sid in SECTION_LABELS
	]
	return ScoreResult(
		score=total,
		max_score=MAX_SCORE,
		overall_pct=_pct(total, MAX_SCORE),
		tier=tier_for(total),
		breakdown=breakdown,
		breakdown_max=dict(SECTION_MAX),
		breakdown_pct=breakdown_pct,
		sections=sections,
	)
