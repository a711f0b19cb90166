"""
Configuration for blob_cache.
"""
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .types import FreshnessPolicy

logger = logging.getLogger(__name__)


@dataclass
class BlobCacheConfig:
    """Configuration for a named cache and the registry."""

    namespace_prefix: str = "blobcache-"
    """Prefix joined with the cache name to form the store namespace."""

    default_max_age_seconds: float = 0
    """max-age used when a stored response has none. Default: 0 (always stale)."""

    default_stale_while_revalidate_seconds: float = 0
    """stale-while-revalidate used when a stored response has none. Default: 0."""

    single_flight_refresh: bool = True
    """Share one background refresh between concurrent stale hits. Default: True."""

    fetch_timeout_seconds: float = 30.0
    """Timeout for the default httpx client. Default: 30 seconds."""

    def freshness_policy(self) -> FreshnessPolicy:
        """Build the freshness fallback policy from this config."""
        return FreshnessPolicy(
            default_max_age_seconds=self.default_max_age_seconds,
            default_stale_while_revalidate_seconds=self.default_stale_while_revalidate_seconds,
        )


DEFAULT_BLOB_CACHE_CONFIG = BlobCacheConfig(
    namespace_prefix="blobcache-",
    default_max_age_seconds=0,
    default_stale_while_revalidate_seconds=0,
    single_flight_refresh=True,
    fetch_timeout_seconds=30.0,
)


def merge_blob_cache_config(
    config: Optional[BlobCacheConfig] = None,
) -> BlobCacheConfig:
    """Merge user config with defaults."""
    if config is None:
        return BlobCacheConfig(
            namespace_prefix=DEFAULT_BLOB_CACHE_CONFIG.namespace_prefix,
            default_max_age_seconds=DEFAULT_BLOB_CACHE_CONFIG.default_max_age_seconds,
            default_stale_while_revalidate_seconds=DEFAULT_BLOB_CACHE_CONFIG.default_stale_while_revalidate_seconds,
            single_flight_refresh=DEFAULT_BLOB_CACHE_CONFIG.single_flight_refresh,
            fetch_timeout_seconds=DEFAULT_BLOB_CACHE_CONFIG.fetch_timeout_seconds,
        )

    return BlobCacheConfig(
        namespace_prefix=config.namespace_prefix
        if config.namespace_prefix is not None
        else DEFAULT_BLOB_CACHE_CONFIG.namespace_prefix,
        default_max_age_seconds=config.default_max_age_seconds
        if config.default_max_age_seconds is not None
        else DEFAULT_BLOB_CACHE_CONFIG.default_max_age_seconds,
        default_stale_while_revalidate_seconds=config.default_stale_while_revalidate_seconds
        if config.default_stale_while_revalidate_seconds is not None
        else DEFAULT_BLOB_CACHE_CONFIG.default_stale_while_revalidate_seconds,
        single_flight_refresh=config.single_flight_refresh
        if config.single_flight_refresh is not None
        else DEFAULT_BLOB_CACHE_CONFIG.single_flight_refresh,
        fetch_timeout_seconds=config.fetch_timeout_seconds
        if config.fetch_timeout_seconds is not None
        else DEFAULT_BLOB_CACHE_CONFIG.fetch_timeout_seconds,
    )


def _read_float(environ: Mapping[str, str], name: str) -> Optional[float]:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"config_from_env: ignoring {name}={raw!r}, not a number")
        return None


def _read_bool(environ: Mapping[str, str], name: str) -> Optional[bool]:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> BlobCacheConfig:
    """
    Build a config from BLOB_CACHE_* environment variables.

    Recognized variables:
        BLOB_CACHE_NAMESPACE_PREFIX: store namespace prefix
        BLOB_CACHE_DEFAULT_MAX_AGE: fallback max-age in seconds
        BLOB_CACHE_DEFAULT_SWR: fallback stale-while-revalidate in seconds
        BLOB_CACHE_SINGLE_FLIGHT: "true"/"false"
        BLOB_CACHE_FETCH_TIMEOUT: default client timeout in seconds

    Unset or invalid values fall back to the defaults.
    """
    if environ is None:
        environ = os.environ

    config = merge_blob_cache_config()

    prefix = environ.get("BLOB_CACHE_NAMESPACE_PREFIX")
    if prefix is not None:
        config.namespace_prefix = prefix

    max_age = _read_float(environ, "BLOB_CACHE_DEFAULT_MAX_AGE")
    if max_age is not None:
        config.default_max_age_seconds = max_age

    swr = _read_float(environ, "BLOB_CACHE_DEFAULT_SWR")
    if swr is not None:
        config.default_stale_while_revalidate_seconds = swr

    single_flight = _read_bool(environ, "BLOB_CACHE_SINGLE_FLIGHT")
    if single_flight is not None:
        config.single_flight_refresh = single_flight

    timeout = _read_float(environ, "BLOB_CACHE_FETCH_TIMEOUT")
    if timeout is not None:
        config.fetch_timeout_seconds = timeout

    logger.debug(
        "config_from_env: "
        f"namespace_prefix={config.namespace_prefix!r}, "
        f"default_max_age_seconds={config.default_max_age_seconds}, "
        f"default_stale_while_revalidate_seconds={config.default_stale_while_revalidate_seconds}, "
        f"single_flight_refresh={config.single_flight_refresh}"
    )
    return config
