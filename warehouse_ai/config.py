from pydantic import BaseModel
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Load .env file if it exists (before reading os.getenv)
_env_path = Path(__file__).resolve().parent.parent / ".env"
if _env_path.exists():
    with open(_env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                # Only set if not already in environment (env vars take precedence)
                if key not in os.environ:
                    os.environ[key] = value


def _sanitize_ascii(val: str) -> str:
    """Strip non-ASCII characters from config values (prevents encoding errors)"""
    return val.encode('ascii', errors='ignore').decode('ascii').strip()


def parse_remote_agents(raw: str) -> dict:
    """Parse ``id=url,id2=url2`` into an ordered {agent_id: endpoint} map."""
    agents = {}
    for item in raw.split(","):
        item = item.strip()
        if not item or "=" not in item:
            continue
        agent_id, _, endpoint = item.partition("=")
        agents[agent_id.strip()] = endpoint.strip().rstrip("/")
    return agents


class Settings(BaseModel):
    # Network
    http_host: str = os.getenv("WAREHOUSE_HTTP_HOST", "0.0.0.0")
    http_port: int = int(os.getenv("WAREHOUSE_HTTP_PORT", "3000"))
    # Standalone agent server (remote agent boundary), 0 = disabled
    agent_server_port: int = int(os.getenv("AGENT_SERVER_PORT", "0"))

    # Intent classifier (OpenAI-compatible chat completions, JSON mode)
    openai_api_key: str = _sanitize_ascii(os.getenv("OPENAI_API_KEY", ""))
    openai_base_url: str = _sanitize_ascii(os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"))
    intent_model: str = _sanitize_ascii(os.getenv("INTENT_MODEL", "gpt-4o-mini"))
    classifier_timeout_s: float = float(os.getenv("CLASSIFIER_TIMEOUT", "10"))
    confidence_threshold: int = int(os.getenv("CONFIDENCE_THRESHOLD", "40"))

    # Agent registry
    registry_refresh_interval_s: float = float(os.getenv("REGISTRY_REFRESH_INTERVAL", "30"))
    agent_http_timeout_s: float = float(os.getenv("AGENT_HTTP_TIMEOUT", "10"))
    remote_agents: str = os.getenv("REMOTE_AGENTS", "")

    # Conversations
    max_history_turns: int = int(os.getenv("MAX_HISTORY_TURNS", "20"))
    conversation_idle_ttl_s: float = float(os.getenv("CONVERSATION_IDLE_TTL", "3600"))

    # Inventory data store
    database_url: str = os.getenv(
        "DATABASE_URL",
        f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'warehouse.db'}",
    )

settings = Settings()

# Log config for debugging
_oai_key = '***' + settings.openai_api_key[-4:] if len(settings.openai_api_key) > 4 else 'EMPTY'
logger.info(f"Config: Intent → {settings.openai_base_url}, model={settings.intent_model} (key={_oai_key})")
logger.info(f"Config: registry refresh every {settings.registry_refresh_interval_s}s, "
            f"confidence threshold={settings.confidence_threshold}")
