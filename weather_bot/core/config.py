from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Storage mode: "mongodb" or "local"
    STORAGE_MODE: str = "local"

    # MongoDB Configuration (only needed if STORAGE_MODE=mongodb)
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "weather_bot_db"

    # Local storage root (only used if STORAGE_MODE=local)
    LOCAL_DATA_DIR: str = "data"

    LOGGER: int = 20

    # Telegram Configuration
    TELEGRAM_BOT_TOKEN: str = "your-token-here"
    TELEGRAM_WEBHOOK_URL: str | None = None
    TELEGRAM_WEBHOOK_SECRET: str | None = None

    # OpenWeather Configuration
    OPENWEATHER_API_KEY: str = "your-key-here"
    OPENWEATHER_BASE_URL: str = "https://api.openweathermap.org"
    HTTP_TIMEOUT_SECONDS: float = 10.0
    GEOCODING_LIMIT: int = 5

    DEFAULT_LANGUAGE: str = "en"

    # LLM rewrite of the daily push. Unset keeps the plain forecast page.
    # Options: gemini, mistral, openai, anthropic, groq
    LLM_PROVIDER: str | None = None
    LLM_TIMEOUT_SECONDS: float = 30.0

    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-1.5-flash"

    MISTRAL_API_KEY: str | None = None
    MISTRAL_MODEL: str = "mistral-small-latest"

    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"

    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-haiku-20240307"

    GROQ_API_KEY: str | None = None
    GROQ_MODEL: str = "llama3-8b-8192"

    # Background jobs
    ENABLE_BACKGROUND_JOBS: bool = True
    SWEEP_INTERVAL_MINUTES: int = 15
    RETENTION_MINUTES: int = 120  # must stay well above PUSH_TICK_SECONDS
    PUSH_TICK_SECONDS: int = 60
    MESSAGE_CHUNK_SIZE: int = 4090

    model_config = SettingsConfigDict(
        # Look for .env in the current folder OR the parent folder
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
