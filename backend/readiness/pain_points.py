from __future__ import annotations
from typing import Dict, FrozenSet, List

from .scoring import Answers, NONE_TOKEN, SECTION_LABELS, norm, normalize_answers


# Single-select answers that flag the section as a gap
NEGATIVE_CHOICES: Dict[str, FrozenSet[str]] = {
	"q2": frozenset({"separate_systems", "no_centralized"}),
	"q3": frozenset({"no_training_open", "resistant"}),
	"q4": frozenset({"limited_scaling", "no_scalability"}),
	"q7": frozenset({"interest_no_budget", "limited_engagement"}),
}

# Multi-select fields flagged when empty or "none"
GAP_WHEN_EMPTY = ("q1", "q5", "q6")

# Declaration order of the checked sections
_SECTION_FIELDS = [
	("s1", "q1"),
	("s2", "q2"),
	("s3", "q3"),
	("s4", "q4"),
	("s5", "q5"),
	("s6", "q6"),
	("s7", "q7"),
]


def extract_pain_points(answers: Answers) -> List[str]:
	a = normalize_answers(answers)
	flagged: List[str] = []
	for section_id, field in _SECTION_FIELDS:
		value = getattr(a, field)
		if field in GAP_WHEN_EMPTY:
			gap = not value or value == [NONE_TOKEN]
		else:
			gap = norm(value) in NEGATIVE_CHOICES[field]
		if gap:
			flagged.append(SECTION_LABELS[section_id])
	return flagged
