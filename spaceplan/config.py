from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # AI APIs
    anthropic_api_key: str = ""
    google_ai_api_key: str = ""
    text_model: str = "claude-sonnet-4-5"
    text_max_tokens: int = 4096
    gemini_model: str = "gemini-3-pro-image-preview"
    image_timeout_seconds: float = 150.0

    # Conversation pacing (seconds)
    welcome_reveal_delay: float = 0.5
    first_question_delay: float = 1.0
    question_reveal_delay: float = 0.8
    input_reveal_delay: float = 0.3
    answer_advance_delay: float = 0.5
    re_edit_reveal_delay: float = 0.3

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""
    use_mock_generators: bool = True


settings = Settings()
