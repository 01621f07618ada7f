"""Application-wide configuration loaded from environment variables."""

import os

from dotenv import load_dotenv

load_dotenv()

# Redis
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

# ── Narrative Collaborator (LLM) ─────────────────────────────────────────

ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
NARRATIVE_MODEL: str = os.getenv("NARRATIVE_MODEL", "claude-sonnet-4-5-20250929")
NARRATIVE_MAX_TOKENS: int = int(os.getenv("NARRATIVE_MAX_TOKENS", "1500"))
NARRATIVE_TEMPERATURE: float = float(os.getenv("NARRATIVE_TEMPERATURE", "0.7"))
NARRATIVE_TIMEOUT_SECONDS: float = float(os.getenv("NARRATIVE_TIMEOUT_SECONDS", "30"))

# Set to "false" to always use the deterministic quest engine.
NARRATIVE_ENABLED: bool = os.getenv("NARRATIVE_ENABLED", "true").lower() in ("1", "true", "yes")

# ── Server Configuration ─────────────────────────────────────────────────

SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
