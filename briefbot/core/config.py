import os
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

load_dotenv()


class Settings(BaseModel):
    """Application settings loaded from environment: OpenAI key and model, brief word budget, generation retry policy, upload limits, storage backend, prompt version, and calendar connector.
    Why available: Single source of configuration so the submission path, processor, and generator agree on limits."""
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    chat_model: str = os.getenv("CHAT_MODEL", "gpt-4o")
    max_brief_words: int = int(os.getenv("MAX_BRIEF_WORDS", "350"))
    generation_max_attempts: int = int(os.getenv("GENERATION_MAX_ATTEMPTS", "3"))
    generation_initial_backoff_seconds: float = float(os.getenv("GENERATION_INITIAL_BACKOFF_SECONDS", "1.0"))
    generation_max_tokens: int = int(os.getenv("GENERATION_MAX_TOKENS", "4096"))
    max_files: int = int(os.getenv("MAX_FILES", "10"))
    max_file_mb: int = int(os.getenv("MAX_FILE_MB", "10"))  # per uploaded file
    data_root: str = os.getenv("DATA_ROOT", os.path.join(os.getcwd(), "data"))
    store_backend: str = os.getenv("STORE_BACKEND", "json")  # json | memory
    prompt_version: str = os.getenv("PROMPT_VERSION", "v1")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    calendar_connector_url: str = os.getenv("CALENDAR_CONNECTOR_URL", "")
    calendar_connector_token: str = os.getenv("CALENDAR_CONNECTOR_TOKEN", "")

    @field_validator(
        "max_brief_words",
        "generation_max_attempts",
        "generation_max_tokens",
        "max_files",
        "max_file_mb",
    )
    @classmethod
    def must_be_positive(cls, v):
        """Ensure limits and budgets are positive integers. Prevents invalid config from env."""
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("generation_initial_backoff_seconds")
    @classmethod
    def must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("store_backend")
    @classmethod
    def known_backend(cls, v):
        v = (v or "").strip().lower()
        if v not in ("json", "memory"):
            raise ValueError("must be 'json' or 'memory'")
        return v

    @property
    def max_file_bytes(self) -> int:
        return self.max_file_mb * 1024 * 1024

    @property
    def upload_root(self) -> str:
        return os.path.join(self.data_root, "uploads")


settings = Settings()
