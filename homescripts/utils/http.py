#!/usr/bin/env python3
"""
HTTP helpers with retry on transient failures.
"""
import time
import logging
from typing import Any, Dict, Optional

import requests

TIMEOUT = 30                 # per-request timeout seconds
MAX_RETRIES_429 = 6          # exponential backoff tries on 429
MAX_RETRIES_5XX = 3          # retries on transient 5xx (e.g., 502/503/504)


def backoff_sleep(attempt: int) -> None:
    delay = min(2 ** attempt, 30)
    time.sleep(delay)


def request(
    method: str,
    url: str,
    session: Optional[requests.Session] = None,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Any] = None,
    timeout: float = TIMEOUT,
) -> requests.Response:
    """
    Send a request, retrying network errors and 5xx responses with backoff
    and honoring Retry-After on 429. The last response is returned as-is.
    """
    http = session or requests
    attempt = 0
    while True:
        try:
            r = http.request(method, url, headers=headers, params=params, json=json, timeout=timeout)
        except requests.RequestException as e:
            # Network error: retry as a transient failure
            if attempt >= MAX_RETRIES_5XX:
                raise
            attempt += 1
            logging.warning("%s error %s; retrying (%d/%d) ...", method, e, attempt, MAX_RETRIES_5XX)
            backoff_sleep(attempt)
            continue

        # 429 Too Many Requests: honor Retry-After if present
        if r.status_code == 429:
            if attempt >= MAX_RETRIES_429:
                return r
            attempt += 1
            retry_after = r.headers.get("retry-after")
            if retry_after and retry_after.isdigit():
                time.sleep(int(retry_after))
            else:
                backoff_sleep(attempt)
            continue

        if 500 <= r.status_code < 600:
            if attempt >= MAX_RETRIES_5XX:
                return r
            attempt += 1
            logging.warning("%s %s -> %d; retrying (%d/%d) ...", method, url, r.status_code, attempt, MAX_RETRIES_5XX)
            backoff_sleep(attempt)
            continue

        return r


def get_json(url: str, **kwargs) -> requests.Response:
    return request("GET", url, **kwargs)


def put_json(url: str, payload: Dict[str, Any], **kwargs) -> requests.Response:
    return request("PUT", url, json=payload, **kwargs)


def post_json(url: str, payload: Dict[str, Any], **kwargs) -> requests.Response:
    return request("POST", url, json=payload, **kwargs)
