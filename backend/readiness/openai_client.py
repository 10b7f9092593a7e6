from __future__ import annotations
import httpx
from typing import Any, Dict, Optional
from .settings import settings


SYSTEM_PROMPT = (
	"You are an expert operations and CX transformation consultant. "
	"Generate professional, actionable reports for AI readiness assessments."
)

EMPTY_COMPLETION = "Unable to generate AI report"


class ReportClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.openai_api_key
		if not self.api_key:
			raise ValueError("OPENAI_API_KEY is not configured")
		self.model = model or settings.openai_model
		self.base_url = base_url or settings.openai_base_url
		self.max_tokens = settings.openai_max_tokens
		self.temperature = settings.openai_temperature
		self._client = httpx.AsyncClient(timeout=30, transport=transport)

	async def generate(self, prompt: str) -> str:
		payload: Dict[str, Any] = {
			"model": self.model,
			"messages": [
				{"role": "system", "content": SYSTEM_PROMPT},
				{"role": "user", "content": prompt},
			],
			"max_tokens": self.max_tokens,
			"temperature": self.temperature,
		}
		headers = {
			"Authorization": f"Bearer {self.api_key}",
			"Content-Type": "application/json",
		}
		r = await self._client.post(self.base_url, headers=headers, json=payload)
		r.raise_for_status()
		try:
			data = r.json()
			content = data["choices"][0]["message"].get("content")
		except Exception as err:
			raise RuntimeError(f"Unexpected completion response: {r.text[:200]}") from err
		return content or EMPTY_COMPLETION

	async def aclose(self) -> None:
		await self._client.aclose()
