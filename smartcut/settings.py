import os


class Settings:
    """Application settings loaded from environment variables."""

    TMP_DIR: str = os.getenv("SMARTCUT_TMP_DIR", "/tmp/smartcut")

    # Transcription settings
    TRANSCRIBE_DEFAULT_MODEL: str = os.getenv("TRANSCRIBE_DEFAULT_MODEL", "small")

    # AI analysis settings
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    ANALYSIS_MODEL: str = os.getenv("ANALYSIS_MODEL", "claude-3-5-haiku-20241022")
    ANALYSIS_MAX_TOKENS: int = int(os.getenv("ANALYSIS_MAX_TOKENS", "8192"))
    ANALYSIS_MAX_RETRIES: int = int(os.getenv("ANALYSIS_MAX_RETRIES", "2"))

    # Undo depth per editor session (0 = unlimited)
    HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "0"))


settings = Settings()
