from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Report generation (OpenAI-compatible chat completions)
	openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
	openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")
	openai_base_url: str = Field(default="https://api.openai.com/v1/chat/completions", validation_alias="OPENAI_BASE_URL")
	openai_max_tokens: int = Field(default=2000, validation_alias="OPENAI_MAX_TOKENS")
	openai_temperature: float = Field(default=0.7, validation_alias="OPENAI_TEMPERATURE")

	# Transactional email (SendGrid v3)
	sendgrid_api_key: str | None = Field(default=None, validation_alias="SENDGRID_API_KEY")
	sendgrid_from_email: str | None = Field(default=None, validation_alias="SENDGRID_FROM_EMAIL")
	sendgrid_from_name: str = Field(default="AI Readiness Reports", validation_alias="SENDGRID_FROM_NAME")
	sendgrid_base_url: str = Field(default="https://api.sendgrid.com/v3/mail/send", validation_alias="SENDGRID_BASE_URL")

	# Admin auth
	admin_password: str | None = Field(default=None, validation_alias="ADMIN_PASSWORD")
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	admin_token_expire_hours: int = Field(default=24, validation_alias="ADMIN_TOKEN_EXPIRE_HOURS")
	jwt_issuer: str = Field(default="ai-readiness-app", validation_alias="JWT_ISSUER")
	jwt_audience: str = Field(default="ai-readiness-admin", validation_alias="JWT_AUDIENCE")
	csrf_token_ttl_minutes: int = Field(default=15, validation_alias="CSRF_TOKEN_TTL_MINUTES")
	cookie_secure: bool = Field(default=False, validation_alias="COOKIE_SECURE")

	# Abuse control (process-local counters)
	submit_rate_limit: int = Field(default=3, validation_alias="SUBMIT_RATE_LIMIT")
	submit_rate_window_minutes: int = Field(default=15, validation_alias="SUBMIT_RATE_WINDOW_MINUTES")
	admin_rate_limit: int = Field(default=100, validation_alias="ADMIN_RATE_LIMIT")
	admin_rate_window_minutes: int = Field(default=15, validation_alias="ADMIN_RATE_WINDOW_MINUTES")
	login_max_attempts: int = Field(default=5, validation_alias="LOGIN_MAX_ATTEMPTS")
	login_window_minutes: int = Field(default=15, validation_alias="LOGIN_WINDOW_MINUTES")
	login_block_minutes: int = Field(default=30, validation_alias="LOGIN_BLOCK_MINUTES")
	counter_sweep_seconds: int = Field(default=300, validation_alias="COUNTER_SWEEP_SECONDS")
	# Only enable behind a reverse proxy that overwrites X-Forwarded-For
	trust_proxy_headers: bool = Field(default=False, validation_alias="TRUST_PROXY_HEADERS")

	# Submission intake
	max_payload_bytes: int = Field(default=10 * 1024, validation_alias="MAX_PAYLOAD_BYTES")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	def missing_submission_config(self) -> List[str]:
		required = {
			"OPENAI_API_KEY": self.openai_api_key,
			"SENDGRID_API_KEY": self.sendgrid_api_key,
			"SENDGRID_FROM_EMAIL": self.sendgrid_from_email,
		}
		return [name for name, value in required.items() if not value]


settings = Settings()
