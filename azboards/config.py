"""Configuration, credentials and well-known paths for the Azure Boards CLI."""

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)


CONFIG_DIR_NAME = ".azure-boards-cli"
CONFIG_FILE_NAME = "config.yaml"
TOKEN_FILE_NAME = "token"

DEFAULT_CACHE_TTL = 300
DEFAULT_VIEW = "assigned-to-me"


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def get_config_dir() -> Path:
    """Get the ~/.azure-boards-cli directory, creating it if needed.

    Can be overridden via AZB_HOME environment variable (used by tests).
    """
    env_override = os.environ.get("AZB_HOME")
    if env_override:
        config_dir = Path(env_override)
    else:
        config_dir = Path.home() / CONFIG_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get path to config.yaml."""
    return get_config_dir() / CONFIG_FILE_NAME


def get_token_path() -> Path:
    """Get path to the stored personal access token."""
    return get_config_dir() / TOKEN_FILE_NAME


def get_templates_dir() -> Path:
    """Get the template store root."""
    path = get_config_dir() / "templates"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_tmp_dir() -> Path:
    """Get the scratch directory used for editor round-trips."""
    path = get_config_dir() / "tmp"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_logs_dir() -> Path:
    """Get the logs directory."""
    path = get_config_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_keybinds_path() -> Path:
    """Get path to the user keybind override file."""
    return get_config_dir() / "keybinds.yaml"


# ---------------------------------------------------------------------------
# config.yaml
# ---------------------------------------------------------------------------


@dataclass
class Config:
    organization: str = ""
    project: str = ""
    default_area_path: str = ""
    default_iteration: str = ""
    cache_ttl: int = DEFAULT_CACHE_TTL
    default_view: str = DEFAULT_VIEW

    @property
    def organization_url(self) -> str:
        if not self.organization:
            return ""
        return normalize_organization_url(self.organization)

    def require(self) -> None:
        """Raise ConfigError unless organization and project are set."""
        if not self.organization:
            raise ConfigError(
                "organization is not configured. Run 'azb config set organization <name>'"
            )
        if not self.project:
            raise ConfigError(
                "project is not configured. Run 'azb config set project <name>'"
            )


CONFIG_KEYS = tuple(Config.__dataclass_fields__)


def load_config() -> Config:
    """Load config.yaml, falling back to defaults for missing keys."""
    path = get_config_path()
    if not path.exists():
        return Config()

    try:
        with open(path) as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read config {path}: {e}") from e

    known = {k: v for k, v in data.items() if k in CONFIG_KEYS}
    if "cache_ttl" in known:
        try:
            known["cache_ttl"] = int(known["cache_ttl"])
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid cache_ttl %r", known["cache_ttl"])
            known["cache_ttl"] = DEFAULT_CACHE_TTL
    return Config(**known)


def save_config(cfg: Config) -> Path:
    """Write config.yaml. The token is never written here."""
    path = get_config_path()
    with open(path, "w") as f:
        yaml.safe_dump(asdict(cfg), f, default_flow_style=False, sort_keys=False)
    return path


def set_config_value(key: str, value: str) -> Config:
    """Set a single key in config.yaml and return the updated config."""
    if key not in CONFIG_KEYS:
        raise ConfigError(
            f"unknown config key '{key}' (expected one of: {', '.join(CONFIG_KEYS)})"
        )
    cfg = load_config()
    if key == "cache_ttl":
        try:
            setattr(cfg, key, int(value))
        except ValueError as e:
            raise ConfigError(f"cache_ttl must be an integer, got '{value}'") from e
    else:
        setattr(cfg, key, value)
    save_config(cfg)
    return cfg


def normalize_organization_url(org: str) -> str:
    """Normalize an organization name or URL to https://dev.azure.com/<org>."""
    org = org.strip()

    if org.startswith("https://dev.azure.com/"):
        return org.rstrip("/")

    if org.startswith("http://") or org.startswith("https://"):
        org = org.rstrip("/").split("/")[-1]

    if org.startswith("dev.azure.com/"):
        org = org[len("dev.azure.com/"):]
    elif org.startswith("dev.azure.com"):
        org = org[len("dev.azure.com"):]

    return f"https://dev.azure.com/{org.strip('/')}"


# ---------------------------------------------------------------------------
# Personal access token
# ---------------------------------------------------------------------------


def save_token(token: str) -> Path:
    """Store the personal access token with owner-only permissions."""
    path = get_token_path()
    path.write_text(token.strip())
    os.chmod(path, 0o600)
    return path


def get_token() -> str:
    """Return the personal access token.

    AZB_TOKEN takes precedence over the stored token file.
    """
    env_token = os.environ.get("AZB_TOKEN", "").strip()
    if env_token:
        return env_token

    path = get_token_path()
    if not path.exists():
        raise ConfigError("not authenticated. Run 'azb auth login' to authenticate")

    try:
        token = path.read_text().strip()
    except OSError as e:
        raise ConfigError(f"failed to read token: {e}") from e

    if not token:
        raise ConfigError("token file is empty. Run 'azb auth login' to authenticate")
    return token


def is_authenticated() -> bool:
    try:
        get_token()
    except ConfigError:
        return False
    return True


def logout() -> None:
    """Remove the stored token."""
    path = get_token_path()
    if not path.exists():
        raise ConfigError("not authenticated")
    path.unlink()
