from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://sprintr:sprintr@db:5432/sprintr"
  app_version: str = "v2026-10-19"
  build_sha: str = "dev"
  app_base_url: str = "http://localhost:3000"
  api_docs_enabled: bool = True
  log_level: str = "INFO"
  api_host: str = "0.0.0.0"
  api_port: int = 8000

  supabase_url: str = "http://localhost:54321"
  supabase_anon_key: str = ""
  supabase_service_role_key: str = ""

  images_bucket: str = "images"
  task_attachments_bucket: str = "task-attachments"
  max_image_bytes: int = 5 * 1024 * 1024

  mail_provider: str = "local"  # local | function
  mail_function_name: str = "send-notification-email"

  cookie_secure: bool = False
  cookie_domain: str | None = None
  session_ttl_days: int = 30

  redis_url: str | None = None
  rate_limit_login_ip_per_minute: int = 60
  rate_limit_login_email_per_minute: int = 20
  rate_limit_register_ip_per_minute: int = 10

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  trusted_hosts: str = "localhost,127.0.0.1,api,web"

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]


settings = Settings()
