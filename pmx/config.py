# PMX — configuration
# Override defaults via pmx.yaml, then environment variables.

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent.parent / "pmx.yaml"

# Environment variable -> Config field
ENV_OVERRIDES = {
    "GEMINI_API_KEY": "gemini_api_key",
    "PMX_DB": "db_path",
    "PMX_STATE": "state_path",
    "PMX_MODEL": "model",
    "PMX_API_SECRET": "api_secret",
    "PMX_LOG_LEVEL": "log_level",
}


class ConfigError(Exception):
    """Raised when configuration values are invalid."""
    pass


@dataclass
class Config:
    """Runtime configuration for the PMX server."""

    # Storage
    db_path: str = "~/.local/share/pmx/pmx.db"
    state_path: str = "~/.local/share/pmx/state.json"

    # LLM provider (Gemini REST API)
    gemini_api_key: str = ""
    model: str = "gemini-2.5-flash"
    api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    request_timeout: float = 60.0
    retry_attempts: int = 3
    retry_delay_secs: float = 1.0

    # Behavior
    autosave_delay_secs: float = 1.5
    max_upload_mb: int = 10

    # Server
    api_secret: str = ""
    log_level: str = "INFO"

    def resolve_paths(self):
        """Expand ~ in storage paths."""
        self.db_path = str(Path(self.db_path).expanduser())
        self.state_path = str(Path(self.state_path).expanduser())

    def apply_env(self, environ=None):
        """Environment wins over the YAML file."""
        environ = os.environ if environ is None else environ
        for env_name, attr in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if value:
                setattr(self, attr, value)

    def validate(self):
        if int(self.retry_attempts) < 1:
            raise ConfigError(f"retry_attempts must be >= 1, got {self.retry_attempts}")
        if float(self.autosave_delay_secs) < 0:
            raise ConfigError(f"autosave_delay_secs must be >= 0, got {self.autosave_delay_secs}")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Unknown log_level: {self.log_level}")
        self.log_level = self.log_level.upper()

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        cfg = cls()
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                known = {f.name for f in fields(cls)}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable config {cfg_path}: {e}")
                cfg = cls()
        cfg.apply_env(environ)
        cfg.resolve_paths()
        cfg.validate()
        return cfg
