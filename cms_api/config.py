from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Application
    DEBUG: bool = False
    API_PREFIX: str = ""
    PROJECT_NAME: str = "CMS API"
    LOG_LEVEL: str = "INFO"

    # Batch requests
    BATCH_SEARCH_METHOD: str = "SEARCH"
    RETRIEVAL_METHODS: List[str] = ["GET", "HEAD"]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
