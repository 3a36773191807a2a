from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_secret_key: str = "change-me-in-production"

    # Database
    database_path: str = "./data/rapids.db"

    # Logging
    log_level: str = "info"

    # Key generation defaults
    default_key_prefix: str = "rapids_"
    default_key_length: int = 32
    default_key_charset: str = "base64url"

    # Listing
    list_max_limit: int = 100

    # Background purge of stale rate-limit windows (0 disables the loop)
    rate_window_purge_interval_seconds: int = 300

    # CORS
    cors_origins: str = "*"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
