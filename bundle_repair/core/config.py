from pydantic_settings import BaseSettings
from typing import Any, List
import json


def parse_file_names(v: Any) -> List[str]:
    """Parse file names from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [name.strip() for name in v.split(',') if name.strip()]
    return []


class Settings(BaseSettings):
    """Engine settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Bundle Repair"
    ENVIRONMENT: str = "development"

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # Empty means console only

    # ==========================================
    # Scan limits (bound worst-case CPU per call)
    # ==========================================
    SCAN_CHAR_LIMIT: int = 1_000_000
    FIELD_CHAR_LIMIT: int = 1_000_000
    METADATA_CHAR_LIMIT: int = 5_000
    MAX_CANDIDATE_REGIONS: int = 5

    # ==========================================
    # Bundle shape
    # ==========================================
    MARKUP_FILE_NAME: str = "index.html"
    STYLESHEET_FILE_NAME: str = "styles.css"
    SCRIPT_FILE_NAME: str = "script.js"
    STYLESHEET_ALIASES_STR: str = "style.css"
    MIN_FILE_CONTENT_LENGTH: int = 10

    # ==========================================
    # Result defaults
    # ==========================================
    DEFAULT_MODEL_NAME: str = "unknown"
    DOCUMENT_LANG: str = "en"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    @property
    def STYLESHEET_ALIASES(self) -> List[str]:
        """Get stylesheet aliases as a list"""
        return parse_file_names(self.STYLESHEET_ALIASES_STR)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


# Create settings instance
settings = Settings()
