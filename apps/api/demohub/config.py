from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./demohub.db"
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]
    # Either secret enables its auth channel; with neither set every webhook is rejected
    tavus_webhook_secret: str = ""
    tavus_webhook_token: str = ""
    tavus_api_key: str = ""
    tavus_api_base_url: str = "https://tavusapi.com/v2"
    tavus_api_timeout_seconds: float = 10.0
    video_base_url: str = ""
    toolcall_text_fallback: bool = False

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()
