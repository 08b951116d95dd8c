"""Application configuration settings"""

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # Forces DEBUG logging regardless of LOG_LEVEL
    DEBUG = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes", "on"}

    # OpenAI
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
    OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.1"))
    OPENAI_KEY = os.getenv("OPENAI_API_KEY", "")
    AGENT_MAX_TOKENS = int(os.getenv("AGENT_MAX_TOKENS", "4000"))

    # LLM resilience
    LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "120"))
    LLM_CONNECT_TIMEOUT = float(os.getenv("LLM_CONNECT_TIMEOUT", "10"))
    LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "2"))
    LLM_CB_FAILURE_THRESHOLD = int(os.getenv("LLM_CB_FAILURE_THRESHOLD", "5"))
    LLM_CB_RECOVERY_TIMEOUT = int(os.getenv("LLM_CB_RECOVERY_TIMEOUT", "30"))

    # Cross-provider fallback (OpenAI-compatible endpoint), disabled unless all three are set
    LLM_FALLBACK_BASE_URL = os.getenv("LLM_FALLBACK_BASE_URL", "")
    LLM_FALLBACK_API_KEY = os.getenv("LLM_FALLBACK_API_KEY", "")
    LLM_FALLBACK_MODEL = os.getenv("LLM_FALLBACK_MODEL", "")

    # Modeling agent context limits
    # Caps the serialized snapshot sent to the model
    CONTEXT_ENTITY_LIMIT = int(os.getenv("CONTEXT_ENTITY_LIMIT", "40"))
    CONTEXT_ATTRIBUTE_LIMIT = int(os.getenv("CONTEXT_ATTRIBUTE_LIMIT", "25"))

    # Relationship defaults
    DEFAULT_RELATIONSHIP_TYPE = os.getenv("DEFAULT_RELATIONSHIP_TYPE", "1:N")

    # Cascade behaviour
    # When true, rows written by a failed cascade are deleted in reverse order
    CASCADE_ROLLBACK_ON_FAILURE = os.getenv(
        "CASCADE_ROLLBACK_ON_FAILURE", "true"
    ).lower() in {
        "1",
        "true",
        "yes",
        "on",
    }

    # Storage: "memory" or "prisma"
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "memory")

    # Postgresql Database settings
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE", "")
    LOG_FORMAT = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s",
    )


class DevelopmentConfig(Config):
    """Development configuration"""

    DEBUG = True


class TestingConfig(Config):
    """Testing configuration"""

    STORAGE_BACKEND = "memory"


class ProductionConfig(Config):
    """Production configuration"""

    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "prisma")


# Configuration dictionary
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env=None):
    """Get configuration based on environment"""
    if env is None:
        env = os.getenv("APP_ENV", "development")
    return config.get(env, config["default"])
