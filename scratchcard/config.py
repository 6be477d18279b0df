from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "ScratchCard"
    debug: bool = False

    activation_base_url: str = "https://api.o2.sk"

    # JSON field in the verification response that holds the version
    activation_version_field: str = "android"

    activation_threshold: int = 277028

    # No upstream bound exists for the verification call; this is ours
    activation_timeout_seconds: float = 10.0

    scratch_delay_seconds: float = 2.0


settings = Settings()
