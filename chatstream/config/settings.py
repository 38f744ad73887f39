"""Runtime settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CHATSTREAM_", extra="ignore")

    app_name: str = "chatstream"
    log_level: str = "info"
    log_dir: str = "logs"
    # DEBUG 下是否打印完整请求正文；False 时只打 url/bytes，正文按 excerpt 截断
    log_full_request_body: bool = False

    provider: str = "openai"  # openai | ollama | gemini
    base_url: str = ""
    api_key: str = ""
    model: str = ""
    stream: bool = True
    preserve_message_history: bool = True

    request_timeout_seconds: float = 60.0
    max_connections: int = 20
    max_keepalive_connections: int = 5

    base_prompt_path: str = ""
    seed_messages_path: str = ""

    max_error_body_chars: int = Field(default=2000, ge=0)


settings = Settings()
