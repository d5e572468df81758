"""
Support Engine - Configuration Management
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # Tickets
    ticket_code_prefix: str = "TI"
    min_subject_length: int = 10
    min_description_length: int = 50
    ticket_list_limit: int = 100

    # Notifications
    support_managers: str = ""  # Comma-separated recipients for new tickets
    support_email_from: str = "support@localhost"

    # Inbound email webhook
    email_webhook_secret: str = ""

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @property
    def manager_recipients(self) -> List[str]:
        """Parsed support_managers list"""
        return [m.strip() for m in self.support_managers.split(",") if m.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
