from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskhive:taskhive@db:5432/taskhive"
  db_auto_create: bool = False
  sql_echo: bool = False

  app_secret: str = "dev-secret-change-me"
  token_algorithm: str = "HS256"
  access_token_ttl_minutes: int = 60 * 24 * 7
  app_version: str = "v2026-10-17"
  build_sha: str = "dev"
  api_docs_enabled: bool = True

  log_level: str = "INFO"

  cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):5173$"
  trusted_hosts: str = "localhost,127.0.0.1,0.0.0.0,api,test"

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

  def is_test_db(self) -> bool:
    try:
      db_name = self.database_url.rsplit("/", 1)[-1]
      return "test" in db_name
    except Exception:
      return False


settings = Settings()
