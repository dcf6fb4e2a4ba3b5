"""Application configuration loaded from environment variables."""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "clarity-loop"
    debug: bool = False
    log_level: str = "INFO"

    # Validation boundary
    max_request_length: int = 4000

    # Turn machine
    max_iterations: int = 10
    max_questions: int = 5
    conversation_ttl_minutes: int = 60

    # Clarity scoring
    challenge_sufficiency_floor: float = 70.0
    build_sufficiency_floor: float = 50.0
    weight_critical: float = 20.0
    weight_important: float = 10.0
    weight_minor: float = 4.0

    # Question prioritisation
    question_age_penalty: float = 0.1
    question_age_penalty_cap: int = 3

    # Knowledge tables (None → built-in defaults)
    knowledge_path: Optional[str] = None

    # Text understanding
    parser_backend: str = "keyword"
    gemini_model: str = "gemini-2.0-flash"
    gemini_temperature: float = 0.0
    gemini_max_output_tokens: int = 1024

    model_config = {"env_prefix": "CLARITY_"}


settings = Settings()
