import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _parse_cors_origins(raw: str) -> list[str]:
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
CORS_ORIGINS = _parse_cors_origins(os.getenv("CORS_ORIGINS", "*"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -----------------------------------
# Generative model configuration
# -----------------------------------

# EXTRACTION_MODEL: vision-capable model that reads the ingredient label photo
EXTRACTION_MODEL = os.getenv("EXTRACTION_MODEL", "gpt-4o-mini")

# ANALYSIS_MODEL: text model that scores the extracted ingredient list
ANALYSIS_MODEL = os.getenv("ANALYSIS_MODEL", "gpt-4o-mini")

# MODEL_TIMEOUT_S: hard per-call timeout; a timeout fails the stage (-> error)
MODEL_TIMEOUT_S = _env_float("MODEL_TIMEOUT_S", 60.0)

# MODEL_MAX_RETRIES: retries done by the OpenAI SDK on connection errors / 429 / 5xx
MODEL_MAX_RETRIES = _env_int("MODEL_MAX_RETRIES", 2)

MODEL_MAX_TOKENS = _env_int("MODEL_MAX_TOKENS", 1000)

# -----------------------------------
# Storage / records
# -----------------------------------

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scans.db")

# STORAGE_ROOT: directory holding uploaded objects, one sub-directory per bucket
STORAGE_ROOT = os.getenv("STORAGE_ROOT", "./storage")
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "scans-local")
STORAGE_PUBLIC_BASE_URL = os.getenv("STORAGE_PUBLIC_BASE_URL", "http://localhost:8000/files")

# SCAN_NAMESPACE: first path segment of uploads that are scan images
SCAN_NAMESPACE = os.getenv("SCAN_NAMESPACE", "scan_images")

HISTORY_LIMIT = _env_int("HISTORY_LIMIT", 50)

# -----------------------------------
# Auth
# -----------------------------------

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME__PLEASE_SET_ENV")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60)


@dataclass
class Settings:
    """Snapshot of the configuration used to build the service graph."""

    openai_api_key: str | None = OPENAI_API_KEY
    extraction_model: str = EXTRACTION_MODEL
    analysis_model: str = ANALYSIS_MODEL
    model_timeout_s: float = MODEL_TIMEOUT_S
    model_max_retries: int = MODEL_MAX_RETRIES
    model_max_tokens: int = MODEL_MAX_TOKENS
    database_url: str = DATABASE_URL
    storage_root: str = STORAGE_ROOT
    storage_bucket: str = STORAGE_BUCKET
    storage_public_base_url: str = STORAGE_PUBLIC_BASE_URL
    scan_namespace: str = SCAN_NAMESPACE
    history_limit: int = HISTORY_LIMIT
    cors_origins: List[str] = field(default_factory=lambda: list(CORS_ORIGINS))
