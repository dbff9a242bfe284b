"""
Configuration settings for the subscription lifecycle service.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./billing_lifecycle.db"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    # Application
    app_name: str = "Emisor Subscription Lifecycle"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # Lifecycle rules
    scheduling_window_days: int = 30  # Max days ahead a subscription may be scheduled
    default_min_days: int = 5
    default_min_documents: int = 5

    # Maintenance
    sweep_batch_size: int = 500

    model_config = {"env_file": ".env"}


settings = Settings()
