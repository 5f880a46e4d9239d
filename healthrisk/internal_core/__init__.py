from .config import RiskConfig, load_config
from .session_store import InMemorySessionStore

__all__ = ["RiskConfig", "load_config", "InMemorySessionStore"]
