"""
Cache-Control parsing and freshness evaluation.

Everything here is pure: callers pass the clock in.
"""
import re
from email.utils import formatdate
from typing import Iterable, List, Optional, Tuple

from .types import CacheFreshness, CacheMetadata, FreshnessPolicy, FreshnessVerdict

_MAX_AGE_RE = re.compile(r"max-age=(\d+)")
_SWR_RE = re.compile(r"stale-while-revalidate=(\d+)")


def _parse_directive(pattern: "re.Pattern[str]", cache_control: Optional[str]) -> Optional[int]:
    if not cache_control:
        return None
    match = pattern.search(cache_control)
    if match is None:
        return None
    return int(match.group(1))


def parse_max_age(cache_control: Optional[str]) -> Optional[int]:
    """Parse max-age seconds from a Cache-Control value."""
    return _parse_directive(_MAX_AGE_RE, cache_control)


def parse_stale_while_revalidate(cache_control: Optional[str]) -> Optional[int]:
    """Parse stale-while-revalidate seconds from a Cache-Control value."""
    return _parse_directive(_SWR_RE, cache_control)


def get_header(headers: Iterable[Tuple[str, str]], name: str) -> Optional[str]:
    """Get the first header value case-insensitively."""
    lower_name = name.lower()
    for key, value in headers:
        if key.lower() == lower_name:
            return value
    return None


def get_header_values(headers: Iterable[Tuple[str, str]], name: str) -> List[str]:
    """Get every value of a header case-insensitively."""
    lower_name = name.lower()
    return [value for key, value in headers if key.lower() == lower_name]


def is_vary_wildcard(headers: Iterable[Tuple[str, str]]) -> bool:
    """Check if any Vary header contains '*'."""
    return any("*" in value for value in get_header_values(headers, "vary"))


def is_ok_status(status: int) -> bool:
    """Check if a status code is in the 2xx range."""
    return 200 <= status <= 299


def evaluate_freshness(
    metadata: CacheMetadata,
    now_ms: float,
    policy: Optional[FreshnessPolicy] = None,
) -> FreshnessVerdict:
    """
    Classify a stored entry as fresh, stale or expired.

    Args:
        metadata: Stored status, headers and write timestamp
        now_ms: Current time in milliseconds since epoch
        policy: Lifetimes assumed when Cache-Control omits a directive

    Returns:
        FreshnessVerdict with the computed age and lifetimes
    """
    if policy is None:
        policy = FreshnessPolicy()

    cache_control = get_header(metadata.headers, "cache-control")

    max_age = parse_max_age(cache_control)
    if max_age is None:
        max_age = policy.default_max_age_seconds

    swr = parse_stale_while_revalidate(cache_control)
    if swr is None:
        swr = policy.default_stale_while_revalidate_seconds

    age = (now_ms - metadata.timestamp) / 1000

    if age > max_age + swr:
        freshness = CacheFreshness.EXPIRED
    elif age > max_age:
        freshness = CacheFreshness.STALE
    else:
        freshness = CacheFreshness.FRESH

    return FreshnessVerdict(
        freshness=freshness,
        age_seconds=age,
        max_age_seconds=float(max_age),
        stale_while_revalidate_seconds=float(swr),
    )


def format_http_date(timestamp_ms: int) -> str:
    """Format a millisecond timestamp as an HTTP date."""
    return formatdate(timestamp_ms / 1000, usegmt=True)
