from __future__ import annotations
from typing import Dict, List, Optional

from .scoring import Answers, ScoreResult, TIER_BOTTOM, TIER_MIDDLE, TIER_TOP, normalize_answers


NOT_SPECIFIED = "not specified"

SECTOR_LABELS: Dict[str, str] = {
	"retail_ecommerce": "Retail & eCommerce",
	"financial_services_fintech": "Financial Services & Fintech",
	"telecommunications": "Telecommunications",
	"healthcare": "Healthcare",
	"media_entertainment": "Media & Entertainment",
	"energy_utilities": "Energy & Utilities",
	"logistics_transportation": "Logistics & Transportation",
	"manufacturing": "Manufacturing",
	"other": "Other / Not Listed",
}

REGION_LABELS: Dict[str, str] = {
	"na": "North America",
	"emea": "EMEA (Europe, Middle East & Africa)",
	"apac": "APAC (Asia-Pacific)",
	"latam": "LATAM (Latin America)",
	"global": "Global / Multi-region",
}

HIGH_PCT = 75
LOW_PCT = 50


def _join(values: Optional[List[str]]) -> str:
	if not values:
		return NOT_SPECIFIED
	return ", ".join(values)


def _single(value: Optional[str]) -> str:
	return value if value else NOT_SPECIFIED


def _benchmark_note(sector_known: bool, region_known: bool) -> str:
	if sector_known and region_known:
		return "Sector and region are both known; make applicability explicit in every benchmark."
	if sector_known:
		return "No region given; use sector references."
	if region_known:
		return "No sector given; use region references."
	return "Neither sector nor region given; use cross-industry references."


def build_report_prompt(score: ScoreResult, answers: Answers) -> str:
	answers = normalize_answers(answers)
	sector = SECTOR_LABELS.get(answers.sector or "", answers.sector) or NOT_SPECIFIED
	region = REGION_LABELS.get(answers.region or "", answers.region) or NOT_SPECIFIED

	by_label = sorted(score.sections, key=lambda s: s.label)
	section_lines = "\n".join(
		f"       - {s.label}: {s.score}/{s.max} ({s.pct}%)" for s in by_label
	)
	strong = "; ".join(
		f"{s.label} {s.score}/{s.max}" for s in score.sections if s.pct >= HIGH_PCT
	) or NOT_SPECIFIED
	weak = "; ".join(
		f"{s.label} {s.score}/{s.max}" for s in score.sections if s.pct < LOW_PCT
	) or NOT_SPECIFIED
	pain_points = _join(answers.q8)

	return f"""
Ground rules:
  - Never invent statistics, quotes or sources. Cite only reputable 2023+ publications by organization and title, never full URLs.
  - If a quantitative claim cannot be tied to a named publication, state the insight qualitatively instead.
  - Do not include personal names, emails or company identifiers beyond the inputs below.

Benchmarking:
  - Prefer data for the sector ({sector}) and region ({region}).
  - {_benchmark_note(sector != NOT_SPECIFIED, region != NOT_SPECIFIED)}

Style:
  - Consulting tone, factual and succinct. Vary sentence openings.
  - Each section is one short paragraph of 3-5 sentences (insight, evidence, implication) ending with a line "If unchanged: ...".
  - At most one quantified statistic per section; the executive summary may use two.
  - Tie recommendations only to sections or pain points they directly address; favour CX metrics (CSAT, AHT, FCR, NPS, cost per contact).

Length: 900-1200 words in total.

Report structure (use these numbered headings):
  1) Executive Summary
     - Overall score and tier, where the organisation is strong versus fragile, and what it means in practice.
     - Note any input gaps (missing sector, region or answers).
  2) Readiness Score & Tier Interpretation
     - Total score: {score.score}/{score.max_score} ({score.overall_pct}%).
     - Tier: {score.tier}.
     - Section scores:
{section_lines}
  3) Detailed Section Analysis
     - Preserve and guard these strong sections: {strong}.
     - Treat these weak sections as priority fixes: {weak}.
     - Refer to sections by the labels above, never by codes.
  4) Pain Points Analysis
     - Map each selected pain point ({pain_points}) to the low-scoring section(s) behind it.
  5) Recommendations & Next Steps
     - 3-5 actions, each with owner, 30/60/90 day horizon, the scores or pains it addresses, and a leading indicator.
  6) Sources
     - Each organization once, with publication title(s) and year(s).

Inputs:
  - Sector: {sector}
  - Region: {region}
  - AI & Automation Tools (Q1): {_join(answers.q1)}
  - Data Infrastructure Maturity (Q2): {_single(answers.q2)}
  - Workforce AI Adoption Readiness (Q3): {_single(answers.q3)}
  - Scalability of CX Operations (Q4): {_single(answers.q4)}
  - KPI Tracking Sophistication (Q5): {_join(answers.q5)}
  - Security & Compliance (Q6): {_join(answers.q6)}
  - Budget & Executive Buy-In (Q7): {_single(answers.q7)}
  - Challenges (Q8): {pain_points}
  - Urgency (Q9): {_single(answers.q9)}
  - Scoring guide: max {score.max_score}; tiers {TIER_TOP} (21+) / {TIER_MIDDLE} (11-20) / {TIER_BOTTOM} (0-10).
""".strip()
