"""Shared HTTP helper for providers.

Wraps requests so every provider reports failures the same way: as
ProviderError with the provider name attached.
"""

import json
import logging
import re
import time
from typing import Any, Optional

import requests

from dawnpatrol.utils.base import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 12
DEFAULT_MAX_RETRIES = 3
USER_AGENT = "dawnpatrol/0.1 (katabatic forecast)"

_JSONP_RE = re.compile(r"^[^(]*\((.*)\)\s*;?\s*$", re.DOTALL)


def get_json(
    provider: str,
    url: str,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = 1.0,
) -> Any:
    """GET a URL and decode its JSON (or JSONP) body.

    Args:
        provider: Provider name used in errors and logs
        url: Request URL
        params: Query parameters
        headers: Extra headers (a default User-Agent is always sent)
        timeout: Per-request timeout in seconds
        max_retries: Total attempts for connection errors and timeouts
        retry_delay: Base delay between attempts, doubled each time

    Returns:
        Decoded JSON payload

    Raises:
        ProviderError: On network failure, HTTP error, rate limit or bad body
    """
    all_headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    all_headers.update(headers or {})

    last_error: Optional[Exception] = None
    for attempt in range(max_retries):
        try:
            response = requests.get(url, params=params, headers=all_headers, timeout=timeout)
            break
        except (requests.ConnectionError, requests.Timeout) as e:
            last_error = e
            if attempt < max_retries - 1:
                delay = retry_delay * (2**attempt)
                logger.warning(
                    f"{provider}: attempt {attempt + 1} failed: {e}. Retrying in {delay:.1f}s..."
                )
                time.sleep(delay)
        except requests.RequestException as e:
            raise ProviderError(provider, f"request failed: {e}") from e
    else:
        raise ProviderError(provider, f"request failed: {last_error}") from last_error

    if response.status_code == 429:
        raise ProviderError(provider, "rate limited (HTTP 429)")

    try:
        response.raise_for_status()
    except requests.HTTPError as e:
        raise ProviderError(provider, f"HTTP {response.status_code}: {e}") from e

    return decode_body(provider, response.text)


def decode_body(provider: str, text: str) -> Any:
    """Decode a JSON body, unwrapping a JSONP callback if present.

    Raises:
        ProviderError: If the body is not valid JSON
    """
    body = text.strip()
    if body and body[0] not in "[{":
        match = _JSONP_RE.match(body)
        if match is None:
            raise ProviderError(provider, "response is neither JSON nor JSONP")
        body = match.group(1)

    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise ProviderError(provider, f"malformed JSON: {e}") from e
