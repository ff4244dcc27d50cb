from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://kanban:kanban@db:5432/kanban"
  app_secret: str = "dev-secret-change-me"
  app_version: str = "v2026-10-19"
  build_sha: str = "dev"
  api_docs_enabled: bool = True
  log_level: str = "INFO"

  cookie_secure: bool = False
  cookie_domain: str | None = None
  session_ttl_days: int = 14

  rate_limit_login_ip_per_minute: int = 60
  rate_limit_login_email_per_minute: int = 20
  rate_limit_register_ip_per_minute: int = 20
  redis_url: str | None = None

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):3000$"
  trusted_hosts: str = "localhost,127.0.0.1,api,web"

  ai_provider: str = "local"  # local | openai
  openai_api_key: str | None = None
  openai_base_url: str = "https://api.openai.com/v1"
  ai_model: str = "gpt-4o"
  ai_temperature: float = 0.7
  ai_max_tokens: int = 4000
  ai_timeout_seconds: float = 60.0
  ai_prompt_version: str = "1.0.0"
  ai_recommendation_fresh_minutes: int = 60

  app_url: str = "http://localhost:3000"
  invite_ttl_days: int = 7

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]


settings = Settings()
