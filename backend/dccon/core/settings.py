from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "DCCon Downloader"
    dccon_base_url: str = "https://dccon.dcinside.com"
    dccon_image_endpoint: str = "https://dcimg5.dcinside.com/dccon.php?no="
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    request_timeout_s: int = 30
    job_ttl_minutes: int = 30
    max_jobs_per_session: int = 15
    preview_count: int = 4
    resize_min: int = 16
    resize_max: int = 512
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
