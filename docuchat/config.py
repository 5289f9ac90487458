"""
DocuChat Configuration
Supports AWS Parameter Store for production secrets
"""
import os
from dataclasses import dataclass
from typing import Any, Mapping

import boto3
from botocore.exceptions import BotoCoreError, ClientError


def get_parameter(name: str, default: str = "") -> str:
    """Get parameter from AWS Parameter Store or environment"""
    # Environment variable takes precedence
    env_key = name.upper().replace("-", "_").replace("/", "_")
    if env_key in os.environ:
        return os.environ[env_key]

    if os.environ.get("USE_PARAMETER_STORE"):
        try:
            ssm = boto3.client("ssm", region_name=os.environ.get("AWS_REGION", "us-west-2"))
            path = os.environ.get("PARAMETER_STORE_PATH", "/docuchat/prod/")
            response = ssm.get_parameter(Name=f"{path}{name}", WithDecryption=True)
            return response["Parameter"]["Value"]
        except (BotoCoreError, ClientError):
            return default

    return default


def _int_env(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, "") or default)
    except ValueError:
        return default


class Config:
    """Base configuration"""
    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")

    # Database
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///docuchat.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Fix Render's postgres:// URL
    if SQLALCHEMY_DATABASE_URI.startswith("postgres://"):
        SQLALCHEMY_DATABASE_URI = SQLALCHEMY_DATABASE_URI.replace("postgres://", "postgresql://", 1)

    # Session
    PERMANENT_SESSION_LIFETIME = 86400

    # File uploads
    UPLOAD_DIR = os.environ.get("UPLOAD_DIR") or os.path.join(os.getcwd(), "uploads")
    MAX_UPLOAD_MB = _int_env("MAX_UPLOAD_MB", 50)
    MAX_CONTENT_LENGTH = MAX_UPLOAD_MB * 1024 * 1024

    # Extraction
    MAX_TEXT_CHARS = _int_env("MAX_TEXT_CHARS", 1_000_000)
    PDF_MIN_TEXT_CHARS = _int_env("PDF_MIN_TEXT_CHARS", 1000)

    # LLM (any OpenAI-compatible chat completions endpoint)
    LLM_API_KEY = os.environ.get("LLM_API_KEY") or os.environ.get("GROQ_API_KEY", "")
    LLM_BASE_URL = os.environ.get("LLM_BASE_URL", "https://api.groq.com/openai/v1")
    LLM_MODEL = os.environ.get("LLM_MODEL", "llama-3.3-70b-versatile")
    LLM_TIMEOUT = _int_env("LLM_TIMEOUT", 120)
    QA_MAX_CONTEXT_WORDS = _int_env("QA_MAX_CONTEXT_WORDS", 90_000)

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # App Version
    APP_VERSION = os.environ.get("APP_VERSION", "2025.8")


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Override with Parameter Store in production
    SECRET_KEY = get_parameter("secret-key", Config.SECRET_KEY)
    LLM_API_KEY = get_parameter("llm-api-key", Config.LLM_API_KEY)


class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = False
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LLM_API_KEY = "test-llm-key"
    LOG_LEVEL = "WARNING"


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


@dataclass(frozen=True)
class PipelineConfig:
    """Settings consumed by the upload, extraction and question-answering services."""
    upload_dir: str
    max_upload_bytes: int
    max_text_chars: int = 1_000_000
    pdf_min_text_chars: int = 1000
    max_context_words: int = 90_000
    llm_api_key: str = ""
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: str = "llama-3.3-70b-versatile"
    llm_timeout: float = 120

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> "PipelineConfig":
        return cls(
            upload_dir=cfg["UPLOAD_DIR"],
            max_upload_bytes=cfg.get("MAX_CONTENT_LENGTH") or 0,
            max_text_chars=int(cfg.get("MAX_TEXT_CHARS", 1_000_000)),
            pdf_min_text_chars=int(cfg.get("PDF_MIN_TEXT_CHARS", 1000)),
            max_context_words=int(cfg.get("QA_MAX_CONTEXT_WORDS", 90_000)),
            llm_api_key=(cfg.get("LLM_API_KEY") or "").strip(),
            llm_base_url=cfg.get("LLM_BASE_URL") or "https://api.groq.com/openai/v1",
            llm_model=cfg.get("LLM_MODEL") or "llama-3.3-70b-versatile",
            llm_timeout=float(cfg.get("LLM_TIMEOUT") or 120),
        )
