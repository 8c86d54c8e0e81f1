from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    credential_authority_url: str = ""
    credential_authority_timeout_seconds: int = 10
    credential_fallback_enabled: bool = False

    credential_endpoint_url: str = "http://localhost:8000/api/presigned-url"
    credential_timeout_seconds: int = 10
    upload_key_prefix: str = "input_kml_files/"

    max_upload_size_bytes: int = 50 * 1024 * 1024
    allowed_extensions: str = ".kml,.kmz"

    transfer_timeout_seconds: float = 30.0
    transfer_chunk_size_bytes: int = 64 * 1024

    processing_backend: str = "simulated"
    notify_delay_seconds: float = 2.0
    status_poll_interval_seconds: float = 2.0
    status_poll_max_seconds: float = 30.0

    def allowed_extension_set(self) -> frozenset[str]:
        """Parse the comma-separated extension list into lowercase suffixes."""
        return frozenset(
            ext.strip().lower()
            for ext in self.allowed_extensions.split(",")
            if ext.strip()
        )
