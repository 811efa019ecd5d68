"""Runtime configuration read from environment variables."""
import os
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional

from processor.enrichment import DEFAULT_CHUNK_SIZE, DEFAULT_MAX_TOKENS, DEFAULT_MODEL
from processor.models import DateWindow
from scraper.listing_scraper import DEFAULT_SOURCE_URL


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed."""


@dataclass(frozen=True)
class SyncConfig:
    """Settings for one process, built once at startup."""
    source_url: str
    date_window: DateWindow
    anthropic_api_key: Optional[str]
    refresh_interval_seconds: int = 300
    enrichment_chunk_size: int = DEFAULT_CHUNK_SIZE
    anthropic_model: str = DEFAULT_MODEL
    anthropic_max_tokens: int = DEFAULT_MAX_TOKENS
    timeout_seconds: int = 30
    fetch_retries: int = 1
    artifact_path: str = os.path.join('public', 'events.json')
    artifact_bucket: Optional[str] = None
    artifact_key: str = 'events.json'
    log_level: str = 'INFO'
    port: int = 3000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SyncConfig':
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read (defaults to os.environ)

        Returns:
            SyncConfig instance

        Raises:
            ConfigError: If the window is missing/invalid or a number is malformed
        """
        env = os.environ if environ is None else environ

        start = _parse_date(env, 'WINDOW_START')
        end = _parse_date(env, 'WINDOW_END')
        if start > end:
            raise ConfigError(
                f"WINDOW_START {start.isoformat()} is after WINDOW_END {end.isoformat()}"
            )

        return cls(
            source_url=env.get('SOURCE_URL', DEFAULT_SOURCE_URL),
            date_window=DateWindow(start=start, end=end),
            anthropic_api_key=env.get('ANTHROPIC_API_KEY') or None,
            refresh_interval_seconds=_parse_int(env, 'REFRESH_INTERVAL_SECONDS', 300),
            enrichment_chunk_size=_parse_int(env, 'ENRICHMENT_CHUNK_SIZE', DEFAULT_CHUNK_SIZE),
            anthropic_model=env.get('ANTHROPIC_MODEL', DEFAULT_MODEL),
            anthropic_max_tokens=_parse_int(env, 'ANTHROPIC_MAX_TOKENS', DEFAULT_MAX_TOKENS),
            timeout_seconds=_parse_int(env, 'TIMEOUT_SECONDS', 30),
            fetch_retries=_parse_int(env, 'FETCH_RETRIES', 1),
            artifact_path=env.get('ARTIFACT_PATH', os.path.join('public', 'events.json')),
            artifact_bucket=env.get('ARTIFACT_BUCKET') or None,
            artifact_key=env.get('ARTIFACT_KEY', 'events.json'),
            log_level=env.get('LOG_LEVEL', 'INFO'),
            port=_parse_int(env, 'PORT', 3000)
        )


def _parse_date(env: Mapping[str, str], name: str) -> date:
    value = env.get(name)
    if not value:
        raise ConfigError(f"{name} is required (ISO date, e.g. 2026-03-27)")
    try:
        return date.fromisoformat(value.strip())
    except ValueError as e:
        raise ConfigError(f"{name} is not an ISO date: {value!r}") from e


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e
