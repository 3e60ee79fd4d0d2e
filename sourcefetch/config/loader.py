"""Configuration loader with Pydantic validation and env var expansion."""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from .. import settings
from ..providers.base import ProviderSettings
from ..providers.registry import STREAM_ORDER, ProviderName

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sources.yaml"
UNEXPANDED_PATTERN = re.compile(r"\$\{[^}]+\}")


class ProviderOverride(BaseModel):
    """Partial override of a provider's default ProviderSettings."""

    base_url: str | None = None
    timeout: float | None = None
    retries: int | None = None
    retry_backoff: float | None = None
    requests_per_second: float | None = None

    def apply(self, defaults: ProviderSettings) -> ProviderSettings:
        return defaults.model_copy(update=self.model_dump(exclude_none=True))


class FetcherConfig(BaseModel):
    """Configuration for SourceFetcher and its adapters."""

    # Configured order is the streaming order
    providers: list[ProviderName] = Field(default_factory=lambda: list(STREAM_ORDER))
    max_parallel_requests: int = Field(settings.MAX_PARALLEL_REQUESTS, ge=1)
    use_cache: bool = True
    adapter_timeout: float = Field(settings.ADAPTER_TIMEOUT_SECONDS, gt=0)
    stream_limit: int = Field(settings.STREAM_LIMIT_PER_PROVIDER, ge=1, le=100)
    preferred_providers: list[ProviderName] = []
    excluded_providers: list[ProviderName] = []
    api_keys: dict[ProviderName, str | None] = {}
    overrides: dict[ProviderName, ProviderOverride] = {}

    @field_validator("api_keys")
    @classmethod
    def drop_unset_keys(cls, value: dict[ProviderName, str | None]) -> dict[ProviderName, str | None]:
        # ${VAR} references to unset variables survive expansion verbatim
        return {
            name: key
            for name, key in value.items()
            if key and not UNEXPANDED_PATTERN.search(key)
        }


class CacheConfig(BaseModel):
    """Configuration for the shared cache and in-flight deduplicator."""

    search_ttl: float = Field(settings.SEARCH_RESULTS_TTL_SECONDS, gt=0)
    metadata_ttl: float = Field(settings.METADATA_TTL_SECONDS, gt=0)
    max_entries: int = Field(settings.CACHE_MAX_ENTRIES, ge=1)
    in_flight_max_age: float = Field(settings.IN_FLIGHT_MAX_AGE_SECONDS, gt=0)


class ProfileConfig(BaseModel):
    """Configuration profile."""

    fetcher: FetcherConfig = FetcherConfig()
    cache: CacheConfig = CacheConfig()


class ConfigFile(BaseModel):
    """Root configuration file structure."""

    profiles: dict[str, ProfileConfig]


def expand_env_vars(value: str) -> str:
    """Expand ${VAR} references in string with environment variables.

    Unset variables are left as-is.
    """
    if not isinstance(value, str):
        return value

    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return re.sub(r"\$\{([^}]+)\}", replacer, value)


def expand_env_vars_recursive(data):
    """Recursively expand env vars in nested dict/list structures."""
    if isinstance(data, dict):
        return {k: expand_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return expand_env_vars(data)
    else:
        return data


def load_config_from_yaml(config_path: Path, profile_name: str) -> ProfileConfig:
    """Load one profile from a YAML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValidationError: If config is invalid
        KeyError: If profile doesn't exist
    """
    with open(config_path) as f:
        raw_data = yaml.safe_load(f)

    expanded_data = expand_env_vars_recursive(raw_data)
    config_file = ConfigFile(**expanded_data)

    if profile_name not in config_file.profiles:
        available = ", ".join(config_file.profiles.keys())
        raise KeyError(f"Profile '{profile_name}' not found. Available profiles: {available}")

    return config_file.profiles[profile_name]


def load_config_from_env() -> ProfileConfig:
    """Build a profile from settings.py's environment constants."""
    api_keys = {
        ProviderName.CROSSREF: settings.CROSSREF_MAILTO,
        ProviderName.OPENALEX: settings.OPENALEX_MAILTO,
        ProviderName.PUBMED: settings.PUBMED_API_KEY,
        ProviderName.SEMANTIC_SCHOLAR: settings.SEMANTIC_SCHOLAR_API_KEY,
        ProviderName.CORE: settings.CORE_API_KEY,
    }
    return ProfileConfig(fetcher=FetcherConfig(api_keys=api_keys))


def load_config(
    profile: str | None = None,
    config_path: Path | None = None,
) -> ProfileConfig:
    """Load configuration from YAML file or environment variables.

    Args:
        profile: Profile name. If None, uses SOURCEFETCH_PROFILE or "default".
        config_path: Path to config file. If None, uses the bundled sources.yaml.

    Returns:
        ProfileConfig. Falls back to environment-only config when the file
        is missing, invalid, or lacks the profile.
    """
    if profile is None:
        profile = os.environ.get("SOURCEFETCH_PROFILE", "default")

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.warning(f"Config file {config_path} not found, using environment variables")
        return load_config_from_env()

    try:
        return load_config_from_yaml(config_path, profile)
    except (KeyError, ValueError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        logger.warning("Falling back to environment variables")
        return load_config_from_env()
