import logging
import requests
from requests.exceptions import RequestException, Timeout
from ..errors import UpstreamError, UpstreamTimeout


logger = logging.getLogger(__name__)


def ip_lookup(lookup_url: str, timeout_s: float = 5.0) -> dict:
    """
    Look up the server's public IP and its location.

    The lookup service detects the caller's address itself, so no IP is sent.

    Returns:
        dict: ip, isp, city, region, country

    Raises:
        UpstreamTimeout: the lookup service did not answer within timeout_s
        UpstreamError: the lookup service failed or reported an error
    """
    try:
        resp = requests.get(lookup_url, timeout=timeout_s)
    except Timeout:
        logger.warning(f"IP lookup timed out after {timeout_s}s ({lookup_url})")
        raise UpstreamTimeout(
            "The request to the external IP service timed out. "
            "This may be due to a network issue in the production environment."
        )
    except RequestException as e:
        logger.error(f"IP lookup request failed: {e}")
        raise UpstreamError(f"An internal error occurred: {e}")

    if not resp.ok:
        logger.error(f"IP lookup service responded with status: {resp.status_code} {resp.reason}")
        raise UpstreamError(
            f"An internal error occurred: External IP service failed with status: {resp.status_code}"
        )

    try:
        data = resp.json()
    except ValueError as e:
        logger.error(f"IP lookup service returned invalid JSON: {e}")
        raise UpstreamError("An internal error occurred: invalid response from external IP service")

    if data.get("status") == "fail":
        message = data.get("message") or "Failed to get IP information from external service."
        logger.error(f"IP lookup service returned an error: {message}")
        raise UpstreamError(f"An internal error occurred: {message}")

    return {
        "ip": data.get("query"),
        "isp": data.get("isp"),
        "city": data.get("city"),
        "region": data.get("regionName"),
        "country": data.get("country"),
    }
