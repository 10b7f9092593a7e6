from __future__ import annotations
import httpx
from typing import Any, Dict, Optional
from .settings import settings


class EmailClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		from_email: Optional[str] = None,
		base_url: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.sendgrid_api_key
		if not self.api_key:
			raise ValueError("SENDGRID_API_KEY is not configured")
		self.from_email = from_email or settings.sendgrid_from_email
		if not self.from_email:
			raise ValueError("SENDGRID_FROM_EMAIL is not configured")
		self.from_name = settings.sendgrid_from_name
		self.base_url = base_url or settings.sendgrid_base_url
		self._client = httpx.AsyncClient(timeout=30, transport=transport)

	async def send(self, *, to_email: str, to_name: str, subject: str, text: str, html: str) -> None:
		payload: Dict[str, Any] = {
			"personalizations": [
				{"to": [{"email": to_email, "name": to_name}], "subject": subject},
			],
			"from": {"email": self.from_email, "name": self.from_name},
			# text/plain must precede text/html
			"content": [
				{"type": "text/plain", "value": text},
				{"type": "text/html", "value": html},
			],
		}
		headers = {
			"Authorization": f"Bearer {self.api_key}",
			"Content-Type": "application/json",
		}
		r = await self._client.post(self.base_url, headers=headers, json=payload)
		r.raise_for_status()

	async def aclose(self) -> None:
		await self._client.aclose()
