from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./fitness.db"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    # Open Food Facts search API (catalog backfill / scrape)
    FOOD_SOURCE_BASE: str = "https://world.openfoodfacts.org"
    FOOD_SOURCE_TIMEOUT: float = 10.0
    RESEED_DELAY_SECONDS: float = 0.5

    # Meal recommendations are disabled when no key is set
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-flash-lite"


settings = Settings()
