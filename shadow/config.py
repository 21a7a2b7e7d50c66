from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    # Backend mode: "live" (Supabase) or "null" (no-op client for offline runs)
    backend_mode: str = "live"

    # App
    frontend_url: str = "http://localhost:3000"

    # Logging
    log_level: str = "info"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Storage
    post_media_bucket: str = "post-media"
    avatars_bucket: str = "avatars"
    signed_url_ttl_seconds: int = 60
    max_upload_bytes: int = 10 * 1024 * 1024

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
