import re
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at the project root: medlens/core/config.py -> medlens/core -> medlens -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)


class Settings(BaseSettings):
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./medlens.db"
    access_token_expire_minutes: int = 60 * 24
    # Comma separated origins; "*" allows everything
    cors_origins: str = "*"
    rate_limit_per_minute: int = 60
    rate_limit_login_per_minute: int = 10
    environment: str = "development"

    # Hugging Face inference (OpenAI-compatible router)
    hf_api_key: str = ""
    hf_base_url: str = "https://router.huggingface.co/v1"
    hf_model: str = "Qwen/Qwen2.5-VL-7B-Instruct"
    inference_timeout_seconds: float = 60.0

    # S3-compatible object storage (R2, MinIO, AWS)
    storage_endpoint: str = "localhost:9000"
    storage_access_key: str = ""
    storage_secret_key: str = ""
    storage_use_ssl: bool = False
    storage_region: str | None = None
    storage_bucket: str = "medlens-documents"
    upload_url_expiry_seconds: int = 3600
    download_url_expiry_seconds: int = 3600
    upload_max_mb: int = 10

    # processing analyses older than this are demoted to failed by the sweep
    analysis_stale_minutes: int = 15

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("hf_api_key", mode="before")
    @classmethod
    def sanitize_hf_key(cls, v: str | None) -> str:
        """Strips whitespace, a pasted 'Bearer ' prefix and wrapping quotes."""
        v = _BEARER_PREFIX.sub("", (v or "").strip())
        if len(v) >= 2 and v[0] == v[-1] and v[0] in ("'", '"'):
            v = v[1:-1]
        return v.strip()

    @property
    def upload_max_bytes(self) -> int:
        return self.upload_max_mb * 1024 * 1024


settings = Settings()


def is_inference_configured() -> bool:
    return bool(settings.hf_api_key)


def is_storage_configured() -> bool:
    return bool(settings.storage_access_key and settings.storage_secret_key)
