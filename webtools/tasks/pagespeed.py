import logging
import requests
from requests.exceptions import RequestException, Timeout
from ..errors import BadRequest, InternalError, UpstreamError, UpstreamTimeout


logger = logging.getLogger(__name__)

CATEGORIES = ("PERFORMANCE", "ACCESSIBILITY", "BEST_PRACTICES", "SEO")
STRATEGY = "desktop"


def build_params(url: str, api_key: str) -> list[tuple[str, str]]:
    """Query parameters for runPagespeed; `category` repeats once per audit category."""
    params = [("url", url), ("key", api_key)]
    params.extend(("category", c) for c in CATEGORIES)
    params.append(("strategy", STRATEGY))
    return params


def run_pagespeed(url: str | None, api_url: str, api_key: str | None, timeout_s: float = 60.0) -> tuple[dict, int]:
    """
    Run a PageSpeed Insights audit and return (body, status_code) unchanged.
    """
    if not url or not url.strip():
        raise BadRequest("URL parameter is required")

    if not api_key:
        logger.error("PAGESPEED_API_KEY is not set")
        raise InternalError("API key is not configured on the server.")

    logger.info(f"Running PageSpeed audit for {url}")
    try:
        resp = requests.get(api_url, params=build_params(url.strip(), api_key), timeout=timeout_s)
    except Timeout:
        logger.warning(f"PageSpeed request timed out after {timeout_s}s for {url}")
        raise UpstreamTimeout("The request to the PageSpeed service timed out.")
    except RequestException as e:
        logger.error(f"PageSpeed request failed for {url}: {e}")
        raise UpstreamError("An internal server error occurred.")

    try:
        body = resp.json()
    except ValueError:
        logger.error(f"PageSpeed returned non-JSON body with status {resp.status_code}")
        raise UpstreamError("An internal server error occurred.")

    return body, resp.status_code
