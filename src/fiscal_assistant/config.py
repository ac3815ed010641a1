from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_ORG: str | None = None

    LLM_MODEL: str = "gpt-4o-mini"
    TEMPERATURE: float = 0.5
    # Max tokens the model can generate
    MAX_OUTPUT_TOKENS: int = 1000
    # Wall-clock bound for one delegated turn; past it the turn falls back
    LLM_TIMEOUT_S: float = 60.0
    USE_LLM: bool = True
    # Turns sent to the model / turns read back from the turn log
    HISTORY_WINDOW: int = 10
    HISTORY_LIMIT: int = 20

    # Routing and disambiguation
    DIRECT_CONFIDENCE_TAU: float = 0.6
    CLARIFY_CONFIDENCE_TAU: float = 0.4
    CLARIFY_ALTERNATIVE_TAU: float = 0.3
    CLARIFY_GAP: float = 0.2
    MAX_ALTERNATIVES: int = 2

    # Bare-number amounts outside this range are ignored
    AMOUNT_MIN: float = 1.0
    AMOUNT_MAX: float = 10_000_000.0

    # Validation
    QUOTA_WARNING_REMAINING: int = 5
    MIN_JUSTIFICATION_LENGTH: int = 15
    CANCEL_DEADLINE_HOURS: int = 48
    CANCEL_WARNING_MARGIN: float = 0.2  # warn once 80% of the window is gone
    CERT_EXPIRY_WARNING_DAYS: int = 30
    MEI_ANNUAL_LIMIT: float = 81_000.0
    MEI_ISS_RATE: float = 5.0
    DEFAULT_ISS_RATE: float = 5.0
    DEFAULT_SERVICE_CODE: str = "1401"
    PAY_PER_USE_PRICE: float = 9.0
    VALIDATION_WORKERS: int = 4

    # Collaborator caches
    CONNECTION_CACHE_TTL_S: float = 300.0

    TURN_LOG_DIR: str = "logs/turns"

    log_dir: str = "logs"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
