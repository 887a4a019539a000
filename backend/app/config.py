from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    secret_key: str
    access_token_expire_hours: int = 24
    backend_cors_origins: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Duplicate detection over lookup tables
    warning_detection_enabled: bool = True
    warning_detection_interval_minutes: int = 15

    # Bulk endpoints commit item-by-item, paced in chunks of this size
    bulk_batch_size: int = 100
    bulk_max_items: int = 1000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.backend_cors_origins.split(",")]


settings = Settings()
