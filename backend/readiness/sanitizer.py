"""HTML sanitizer for model-generated report content.

Reports are rendered as raw HTML in the admin view and in emails, so every
string that leaves `markdown_to_safe_html` passes through two independent
transforms:

1. `strip_dangerous` removes known-dangerous constructs (script and embedding
   tags, form controls, script URL schemes, inline event handlers) from the raw
   text before anything is parsed as a tag.
2. `rebuild_allowed` re-serializes every remaining tag through a tag
   allow-list and an attribute allow-list, with `style` values passed through
   `sanitize_css`. Unknown tags are dropped but the text between them is kept;
   a stray `<` or `>` outside a tag is escaped.

`sanitize_html` runs both and then repeats the scheme/handler strip until the
output stops changing, which makes the whole transform idempotent.
"""
from __future__ import annotations
import re
from typing import List, Pattern


ALLOWED_TAGS = frozenset({
	"h1", "h2", "h3", "h4", "h5", "h6",
	"p", "br", "div", "span",
	"strong", "b", "em", "i", "u",
	"ul", "ol", "li",
	"blockquote", "code", "pre",
	"hr",
	"table", "thead", "tbody", "tr", "th", "td",
})

ALLOWED_ATTRIBUTES = frozenset({
	"class", "id", "style",
	"title", "alt",
	"width", "height",
	"colspan", "rowspan",
})

VOID_TAGS = frozenset({"br", "hr"})


def _block(tag: str) -> Pattern[str]:
	return re.compile(rf"<{tag}\b[^<]*(?:(?!</{tag}>)<[^<]*)*</{tag}\s*>", re.IGNORECASE)


def _opening(tag: str) -> Pattern[str]:
	return re.compile(rf"<{tag}\b[^>]*>?", re.IGNORECASE)


_SCHEME_PATTERNS: List[Pattern[str]] = [
	re.compile(r"javascript\s*:", re.IGNORECASE),
	re.compile(r"vbscript\s*:", re.IGNORECASE),
	re.compile(r"data\s*:(?=\s*[\w.+-]+/[\w.+-]+\s*[;,])", re.IGNORECASE),
]

_EVENT_HANDLER = re.compile(r"\bon\w+\s*=", re.IGNORECASE)

DANGEROUS_PATTERNS: List[Pattern[str]] = (
	[_block(t) for t in ("script", "iframe", "object", "embed", "form", "textarea",
		"select", "button", "xmp", "listing", "style", "noscript")]
	# Void, unclosed or orphaned leftovers of the same family
	+ [_opening(t) for t in ("script", "iframe", "object", "embed", "form", "input",
		"textarea", "select", "button", "link", "meta", "base", "bgsound", "plaintext",
		"xmp", "listing", "style", "noscript", "svg", "math")]
	+ [re.compile(r"</\s*script\s*>", re.IGNORECASE)]
	+ _SCHEME_PATTERNS
	+ [_EVENT_HANDLER]
)

# Declarations dropped outright by property name
DANGEROUS_CSS_PROPERTIES = frozenset({
	"behavior", "-moz-binding", "background", "background-image",
	"list-style", "list-style-image", "content", "cursor",
})

_DANGEROUS_CSS_VALUE = re.compile(r"expression\s*\(|url\s*\(|javascript\s*:|vbscript\s*:|@import", re.IGNORECASE)
_CSS_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)


def _matches_script_pattern(text: str) -> bool:
	return any(p.search(text) for p in _SCHEME_PATTERNS) or bool(_EVENT_HANDLER.search(text))


_TAG = re.compile(r"<[^<>]*>")
_TAG_NAME = re.compile(r"^<(/)?([a-zA-Z][a-zA-Z0-9]*)")
_ATTRIBUTE = re.compile(r"""([a-zA-Z_:][\w:.-]*)\s*=\s*(?:"([^"]*)"|'([^']*)')""")


def strip_dangerous(html: str) -> str:
	"""Stage one: pattern removal over the raw text."""
	for pattern in DANGEROUS_PATTERNS:
		html = pattern.sub("", html)
	return html


def sanitize_css(css: str) -> str:
	"""Keep only declarations that name a safe property with a safe value.

	Filtering repeats until the declaration list is stable so that removing one
	fragment cannot splice a dangerous one together.
	"""
	previous = None
	current = css or ""
	while current != previous:
		previous = current
		text = _CSS_COMMENT.sub("", current).replace("\\", "")
		kept: List[str] = []
		for declaration in text.split(";"):
			if ":" not in declaration:
				continue
			prop, value = declaration.split(":", 1)
			prop = prop.strip().lower()
			value = value.strip()
			if not prop or not value or not re.fullmatch(r"-?[a-z][a-z-]*", prop):
				continue
			if prop in DANGEROUS_CSS_PROPERTIES or _DANGEROUS_CSS_VALUE.search(value):
				continue
			if "<" in value or ">" in value or '"' in value:
				continue
			declaration = f"{prop}: {value}"
			if _matches_script_pattern(declaration + ";"):
				continue
			kept.append(declaration)
		current = "; ".join(kept)
	return current


def _rebuild_tag(tag: str) -> str:
	match = _TAG_NAME.match(tag)
	if not match:
		# Not markup ("a < b > c"): keep it as text
		return _escape_text(tag)
	closing, name = match.group(1), match.group(2).lower()
	if name not in ALLOWED_TAGS:
		return ""
	if closing:
		return "" if name in VOID_TAGS else f"</{name}>"

	parts = [name]
	for attr in _ATTRIBUTE.finditer(tag[match.end():]):
		attr_name = attr.group(1).lower()
		value = attr.group(2) if attr.group(2) is not None else attr.group(3)
		if attr_name not in ALLOWED_ATTRIBUTES:
			continue
		value = _strip_until_stable(value)
		if attr_name == "style":
			value = sanitize_css(value)
			if not value:
				continue
		value = value.replace('"', "&quot;").replace("<", "&lt;").replace(">", "&gt;")
		parts.append(f'{attr_name}="{value}"')
	if name in VOID_TAGS:
		return "<" + " ".join(parts) + " />"
	return "<" + " ".join(parts) + ">"


def _escape_text(text: str) -> str:
	return text.replace("<", "&lt;").replace(">", "&gt;")


def rebuild_allowed(html: str) -> str:
	"""Stage two: re-serialize tags through the allow-lists."""
	out: List[str] = []
	cursor = 0
	for match in _TAG.finditer(html):
		out.append(_escape_text(html[cursor:match.start()]))
		out.append(_rebuild_tag(match.group(0)))
		cursor = match.end()
	out.append(_escape_text(html[cursor:]))
	return "".join(out)


def _strip_until_stable(html: str) -> str:
	previous = None
	while html != previous:
		previous = html
		for pattern in _SCHEME_PATTERNS:
			html = pattern.sub("", html)
		html = _EVENT_HANDLER.sub("", html)
	return html


def sanitize_html(html: str) -> str:
	if not html or not isinstance(html, str):
		return ""
	return _strip_until_stable(rebuild_allowed(strip_dangerous(html)))
