"""
Retry/backoff and rate-limit-aware HTTP helper.
Used by the GitHub commit fetcher and the HTTP notifier so both honour Retry-After and rate-limit headers the same way.
"""

import os
import time
import random
import email.utils
from datetime import datetime, timezone
from typing import Optional, Dict, Any
import requests

from logging_config import get_logger

log = get_logger(__name__)

# retry/backoff defaults from environment
DEFAULT_MAX_RETRIES = int(os.getenv("OKR_MAX_RETRIES", "3"))
DEFAULT_BACKOFF_BASE = float(os.getenv("OKR_BACKOFF_BASE", "0.5"))
_env_jitter = os.getenv("OKR_BACKOFF_JITTER")
DEFAULT_BACKOFF_JITTER = float(_env_jitter) if _env_jitter is not None and _env_jitter != "" else None
DEFAULT_MAX_BACKOFF = float(os.getenv("OKR_MAX_BACKOFF", "120.0"))
DEFAULT_TIMEOUT = 10.0
MAX_WAIT = 300.0

# runtime-overrides
_runtime_max_retries: Optional[int] = None
_runtime_backoff_base: Optional[float] = None
_runtime_backoff_jitter: Optional[float] = None
_runtime_max_backoff: Optional[float] = None


def configure_retry(
    max_retries: Optional[int] = None, backoff_base: Optional[float] = None, backoff_jitter: Optional[float] = None, max_backoff: Optional[float] = None
):
    """Configure retry/backoff defaults at runtime (e.g. from CLI)."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_backoff_jitter, _runtime_max_backoff
    if max_retries is not None:
        _runtime_max_retries = int(max_retries)
    if backoff_base is not None:
        _runtime_backoff_base = float(backoff_base)
    if backoff_jitter is not None:
        _runtime_backoff_jitter = float(backoff_jitter)
    if max_backoff is not None:
        _runtime_max_backoff = float(max_backoff)


def reset_retry_config():
    """Drop runtime overrides so environment defaults apply again."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_backoff_jitter, _runtime_max_backoff
    _runtime_max_retries = None
    _runtime_backoff_base = None
    _runtime_backoff_jitter = None
    _runtime_max_backoff = None


def _parse_retry_after(raw_ra: Optional[str]) -> Optional[float]:
    if not raw_ra:
        return None
    try:
        return float(raw_ra)
    except ValueError:
        try:
            dt = email.utils.parsedate_to_datetime(raw_ra)
        except (TypeError, ValueError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())


def _header_number(headers: Dict[str, Any], key: str, cast) -> Optional[float]:
    val = headers.get(key)
    if val is None:
        return None
    try:
        return cast(val)
    except (TypeError, ValueError):
        return None


def _parse_rate_headers(resp):
    headers = getattr(resp, 'headers', None) or {}
    ra = _parse_retry_after(headers.get('Retry-After'))
    rl_remaining = _header_number(headers, 'X-RateLimit-Remaining', int)
    rl_reset = _header_number(headers, 'X-RateLimit-Reset', float)
    return ra, rl_remaining, rl_reset


def _resolve_backoff_params(backoff_base: Optional[float], backoff_jitter: Optional[float], max_backoff: Optional[float]):
    if backoff_base is not None:
        base = float(backoff_base)
    elif _runtime_backoff_base is not None:
        base = float(_runtime_backoff_base)
    else:
        base = float(DEFAULT_BACKOFF_BASE)

    if backoff_jitter is not None:
        jitter = float(backoff_jitter)
    elif _runtime_backoff_jitter is not None:
        jitter = float(_runtime_backoff_jitter)
    elif DEFAULT_BACKOFF_JITTER is not None:
        jitter = float(DEFAULT_BACKOFF_JITTER)
    else:
        jitter = base

    if max_backoff is not None:
        max_backoff_resolved = float(max_backoff)
    elif _runtime_max_backoff is not None:
        max_backoff_resolved = float(_runtime_max_backoff)
    else:
        max_backoff_resolved = float(DEFAULT_MAX_BACKOFF)

    return base, jitter, max_backoff_resolved


def _parse_body(resp):
    try:
        return resp.json()
    except ValueError:
        return getattr(resp, 'text', None)


def _should_retry_response(status_code: int, ra: Optional[float], rl_remaining: Optional[int]) -> bool:
    if status_code in (429, 502, 503, 504):
        return True
    if ra is not None:
        return True
    if rl_remaining is not None and rl_remaining <= 0:
        return True
    return False


def _compute_wait_seconds(ra: Optional[float], rl_reset: Optional[float], backoff: float, jitter: float) -> float:
    if ra is not None:
        return min(float(ra) + random.uniform(0, jitter), MAX_WAIT)
    if rl_reset:
        wait = max(0.0, float(rl_reset) - time.time())
        return min(wait + random.uniform(0, jitter), MAX_WAIT)
    return min(backoff + random.uniform(0, jitter), MAX_WAIT)


def _attempt_request_once(method: str, url: str, headers: Dict[str, str], params: Dict[str, Any], json_body: Any, timeout: float):
    try:
        resp = requests.request(method, url, headers=headers or {}, params=params or {}, json=json_body, timeout=timeout)
    except requests.RequestException as ex:
        return 'error', {'exception': str(ex)}

    status = getattr(resp, 'status_code', 0)
    ra, rl_remaining, rl_reset = _parse_rate_headers(resp)

    if 200 <= status < 300:
        return 'success', {'body': _parse_body(resp), 'status': status}

    if _should_retry_response(status, ra, rl_remaining):
        return 'retry', {'status': status, 'ra': ra, 'rl_reset': rl_reset, 'text': getattr(resp, 'text', None)}

    return 'fail', {'body': _parse_body(resp), 'status': status}


def perform_request_with_retries(
    url: str,
    method: str = 'GET',
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json_body: Any = None,
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    backoff_jitter: Optional[float] = None,
    max_backoff: Optional[float] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Dict[str, Any]:
    """
    Issue an HTTP request, retrying transport errors, 429/5xx gateway responses and exhausted rate limits.

    Returns {'response': body-or-text, 'status': int, 'timestamp': float}; status 0 means no response was received.
    Never raises for HTTP or transport failures.
    """
    base, jitter, max_backoff_resolved = _resolve_backoff_params(backoff_base, backoff_jitter, max_backoff)
    if _runtime_max_retries is not None:
        attempts = int(_runtime_max_retries)
    else:
        attempts = int(max_retries if max_retries is not None else DEFAULT_MAX_RETRIES)
    attempts = max(1, attempts)

    backoff = base
    last_result: Dict[str, Any] = {'response': None, 'status': 0, 'timestamp': time.time()}
    for attempt in range(attempts):
        outcome, data = _attempt_request_once(method, url, headers, params, json_body, timeout)

        if outcome in ('success', 'fail'):
            if outcome == 'fail':
                log.warning('http_request_failed', method=method, url=url, status=data.get('status'))
            return {'response': data.get('body'), 'status': data.get('status', 0), 'timestamp': time.time()}

        if outcome == 'error':
            last_result = {'response': data.get('exception'), 'status': 0, 'timestamp': time.time()}
            wait_seconds = min(backoff + random.uniform(0, jitter), max_backoff_resolved)
        else:
            last_result = {'response': data.get('text'), 'status': data.get('status', 0), 'timestamp': time.time()}
            wait_seconds = _compute_wait_seconds(data.get('ra'), data.get('rl_reset'), backoff, jitter)
        backoff = min(backoff * 2, max_backoff_resolved)

        if attempt + 1 < attempts:
            log.info('http_request_retry', method=method, url=url, attempt=attempt + 1, status=last_result['status'], wait_seconds=round(wait_seconds, 2))
            time.sleep(wait_seconds)

    log.warning('http_request_gave_up', method=method, url=url, attempts=attempts, status=last_result['status'])
    return last_result


__all__ = ["configure_retry", "reset_retry_config", "perform_request_with_retries"]
