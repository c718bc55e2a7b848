import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigError

# --- Base Path ---
BASE_DIR = Path(__file__).resolve().parent.parent
logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful and friendly AI assistant. Keep your answers concise."
CHAT_HISTORY_TTL = 24 * 60 * 60

ModelT = TypeVar("ModelT", bound=BaseModel)


# --- Environment-based Settings ---

class AppSettings(BaseSettings):
    """
    Main application settings loaded from environment variables.
    The .env file is loaded automatically by pydantic-settings.
    """
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # --- Provider credentials ---
    GEMINI_API_KEY: Optional[str] = Field(None)
    LLAMA_API_KEY: Optional[str] = Field(None)
    CLAUDE_API_KEY: Optional[str] = Field(None)
    CHATGPT_API_KEY: Optional[str] = Field(None)

    # --- Session Store ---
    REDIS_ADDR: Optional[str] = Field(None, description="host:port of the Redis server. Unset runs the gateway stateless.")
    REDIS_PASSWORD: Optional[str] = Field(None)
    REDIS_DB: int = Field(0)
    REDIS_TIMEOUT: float = Field(5.0, description="Socket and connect timeout for Redis calls, in seconds.")
    CHAT_HISTORY_TTL: int = Field(CHAT_HISTORY_TTL, description="Expiry of a session transcript, in seconds.")

    # --- Conversation ---
    SYSTEM_PROMPT: str = Field(DEFAULT_SYSTEM_PROMPT)

    # --- Server & Logging ---
    HOST: str = Field("0.0.0.0")
    PORT: int = Field(8080)
    LOG_LEVEL: str = Field("INFO", description="Log level for the application (e.g., DEBUG, INFO, WARNING, ERROR)")
    LOG_DIR: Optional[str] = Field(None, description="Optional: directory for the rotating JSON log file.")
    GATEWAY_CONFIG_PATH: Optional[str] = Field(None, description="Optional: Path to a specific providers YAML file.")


# --- YAML-based Configuration Models ---

class ProviderConfig(BaseModel):
    base_url: str
    model: str
    api_key_env: str
    generation: Dict[str, Any] = Field(default_factory=dict)


class ProvidersConfig(BaseModel):
    timeout_seconds: float = 30.0
    providers: Dict[str, ProviderConfig]


def load_yaml(name: str) -> Dict[str, Any]:
    """Loads ``configs/<name>.yml`` from the project root."""
    config_path = BASE_DIR / 'configs' / f'{name}.yml'
    return _read_yaml(config_path)


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file '{config_path.name}' not found in {config_path.parent}")
    with open(config_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def load_config(name: str, model: Type[ModelT]) -> ModelT:
    """Loads a YAML file and validates it with the given Pydantic model."""
    return model.model_validate(load_yaml(name))


# --- Main Config Object ---

class Config:
    """
    A unified configuration object, constructed once at process start and
    handed to the components that need it.
    """
    def __init__(self, app: Optional[AppSettings] = None, providers: Optional[ProvidersConfig] = None):
        try:
            self.app = app or AppSettings()
        except ValidationError as e:
            raise ConfigError(f"Configuration validation error: {e}") from e

        self.providers = providers or self._load_providers()

    def _load_providers(self) -> ProvidersConfig:
        try:
            if self.app.GATEWAY_CONFIG_PATH:
                data = _read_yaml(Path(self.app.GATEWAY_CONFIG_PATH))
                return ProvidersConfig.model_validate(data)
            return load_config('providers', ProvidersConfig)
        except FileNotFoundError as e:
            raise ConfigError(str(e)) from e
        except ValidationError as e:
            raise ConfigError(f"Invalid providers configuration: {e}") from e

    @property
    def model_names(self):
        return list(self.providers.providers)

    def api_key_for(self, name: str) -> Optional[str]:
        """Returns the credential configured for provider ``name``, if any."""
        provider = self.providers.providers.get(name)
        if provider is None:
            return None
        return getattr(self.app, provider.api_key_env, None) or os.getenv(provider.api_key_env)


def load_settings() -> Config:
    """
    Builds the Config object for the running process. Called once by the
    entry point; the result is passed by reference from there on.
    """
    config = Config()
    logger.info(f"Configuration loaded. Providers: {', '.join(config.model_names)}")
    return config
