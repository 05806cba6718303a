"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    contextcanvas_env: str = "development"
    contextcanvas_log_level: str = "info"

    # CORS
    cors_origins: list[str] = ["http://localhost:3003"]

    # Model
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 8192
    thinking_budget: int = 3000

    # Gateway retry: 3 attempts, 2s then 4s between them
    retry_attempts: int = 3
    retry_base_delay_s: float = 2.0

    # Tool loop
    max_tool_rounds: int = 10
    history_limit: int = 20
    session_idle_s: float = 3600.0

    # Deadlines
    model_timeout_s: float = 180.0
    render_timeout_s: float = 30.0
    session_timeout_s: float = 900.0

    # Default canvas size when the client sends none
    canvas_width: int = 1024
    canvas_height: int = 768

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
