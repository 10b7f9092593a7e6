from __future__ import annotations
import html
import re
from datetime import datetime
from typing import List

from .sanitizer import sanitize_html
from .scoring import ScoreResult


_HEADING = re.compile(r"^(#{1,3})\s+(.*)$")
_BULLET = re.compile(r"^\s*(?:[-*•])\s+(.*)$")
_NUMBERED = re.compile(r"^\s*\d+[.)]\s+(.*)$")
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"(?<![*\w])\*(?!\s)(.+?)(?<!\s)\*(?![*\w])")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_URL = re.compile(r"https?://\S+")


def _inline(text: str) -> str:
	text = _LINK.sub(r"\1", text)
	text = _URL.sub("", text)
	text = _BOLD.sub(r"<strong>\1</strong>", text)
	text = _ITALIC.sub(r"<em>\1</em>", text)
	return text.strip()


def _flush_list(out: List[str], kind: str, items: List[str]) -> None:
	if items:
		out.append(f"<{kind}>" + "".join(f"<li>{item}</li>" for item in items) + f"</{kind}>")


def markdown_to_html(markdown: str) -> str:
	"""Convert the limited markdown emitted by the report model into HTML.

	Output is not safe on its own; callers render it through `sanitize_html`.
	"""
	out: List[str] = []
	paragraph: List[str] = []
	list_kind = ""
	list_items: List[str] = []

	def flush_paragraph() -> None:
		if paragraph:
			out.append("<p>" + "<br>".join(paragraph) + "</p>")
			paragraph.clear()

	def flush_list() -> None:
		nonlocal list_kind
		_flush_list(out, list_kind, list_items)
		list_items.clear()
		list_kind = ""

	for raw_line in (markdown or "").splitlines():
		line = raw_line.rstrip()
		if not line.strip():
			flush_paragraph()
			flush_list()
			continue
		heading = _HEADING.match(line)
		if heading:
			flush_paragraph()
			flush_list()
			level = len(heading.group(1))
			out.append(f"<h{level}>{_inline(heading.group(2))}</h{level}>")
			continue
		for kind, pattern in (("ul", _BULLET), ("ol", _NUMBERED)):
			item = pattern.match(line)
			if item:
				flush_paragraph()
				if list_kind and list_kind != kind:
					flush_list()
				list_kind = kind
				list_items.append(_inline(item.group(1)))
				break
		else:
			flush_list()
			inline = _inline(line)
			if inline:
				paragraph.append(inline)
	flush_paragraph()
	flush_list()
	return "\n".join(out)


def markdown_to_safe_html(markdown: str) -> str:
	return sanitize_html(markdown_to_html(markdown))


def markdown_to_text(markdown: str) -> str:
	text = re.sub(r"^#+\s*", "", markdown or "", flags=re.MULTILINE)
	text = _BOLD.sub(r"\1", text)
	text = _ITALIC.sub(r"\1", text)
	text = _LINK.sub(r"\1", text)
	text = _URL.sub("", text)
	return text.strip()


def report_subject(company: str) -> str:
	return f"AI Readiness Report - {company}"


def render_report_html(result: ScoreResult, report: str, company: str) -> str:
	rows = "".join(
		f'<tr><td style="padding: 8px 0; color: #495057;">{html.escape(s.label)}</td>'
		f'<td style="padding: 8px 0; text-align: right; font-weight: 700; color: #007bff;">{s.score}/{s.max}</td></tr>'
		for s in result.sections
	)
	return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>AI Readiness Assessment Report</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
<h1 style="margin: 0 0 10px 0;">AI Readiness Assessment Report</h1>
<p style="font-weight: 600;">Company: {html.escape(company)}</p>
<div style="text-align: center; padding: 24px; border: 2px solid #dee2e6; border-radius: 12px;">
<div style="font-size: 48px; font-weight: 800; color: #007bff;">{result.score}</div>
<div style="color: #6c757d;">out of {result.max_score} points</div>
<div style="font-size: 24px; font-weight: 700; color: #28a745;">{html.escape(result.tier)}</div>
</div>
<h3>Score Breakdown by Section</h3>
<table style="width: 100%;">{rows}</table>
<h3>AI-Generated Analysis &amp; Recommendations</h3>
<div>{markdown_to_safe_html(report)}</div>
<p style="color: #6c757d; font-size: 14px;">Report generated on {datetime.utcnow():%Y-%m-%d}</p>
</body>
</html>"""


def render_report_text(result: ScoreResult, report: str, company: str) -> str:
	breakdown = "\n".join(f"- {s.label}: {s.score}/{s.max} points" for s in result.sections)
	return f"""AI READINESS ASSESSMENT REPORT
==============================

Company: {company}
Assessment Date: {datetime.utcnow():%Y-%m-%d}

YOUR RESULTS
------------
Total Score: {result.score} out of {result.max_score} points
Readiness Tier: {result.tier}

SCORE BREAKDOWN BY SECTION
--------------------------
{breakdown}

AI-GENERATED ANALYSIS & RECOMMENDATIONS
=======================================
{markdown_to_text(report)}
"""
