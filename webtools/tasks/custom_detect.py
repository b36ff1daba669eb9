import logging
import re
import requests
from bs4 import BeautifulSoup
from requests.exceptions import HTTPError, RequestException
from ..errors import BadRequest, UpstreamError


logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/98.0.4758.102 Safari/537.36"
)

CMS_FINGERPRINTS = [
    ("WordPress", re.compile(r"wp-content")),
    ("Shopify", re.compile(r"cdn\.shopify\.com")),
    ("Drupal", re.compile(r"sites/all/modules")),
    ("Joomla", re.compile(r"media/com_joomla")),
    ("Squarespace", re.compile(r"static\.squarespace\.com")),
    ("Wix", re.compile(r"static\.wixstatic\.com")),
]


def _fetch(url: str, timeout_s: float) -> str:
    try:
        resp = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout_s)
        resp.raise_for_status()
        return resp.text
    except HTTPError as e:
        response = getattr(e, "response", None)
        status_code = getattr(response, "status_code", None) or 500
        reason = getattr(response, "reason", None) or "Failed to fetch the URL."
        logger.warning(f"HTTP error {status_code} from {url}")
        raise UpstreamError(reason, status_code=status_code)
    except RequestException as e:
        logger.warning(f"Request failed to {url}: {e}")
        raise UpstreamError("Failed to fetch the URL.")


def fingerprint_html(markup: str) -> list[str]:
    return [name for name, pattern in CMS_FINGERPRINTS if pattern.search(markup)]


def detect_cms(url: str | None, timeout_s: float = 5.0) -> tuple[dict, int]:
    """
    Identify the CMS behind a page.

    A <meta name="generator"> tag wins outright; otherwise the markup inside
    <html> (or the whole document when it has none) is matched against
    CMS_FINGERPRINTS.

    Returns:
        (body, status_code)
    """
    if not url or not url.strip():
        raise BadRequest("URL is required")
    url = url.strip()

    soup = BeautifulSoup(_fetch(url, timeout_s), "html.parser")

    generator = soup.find("meta", attrs={"name": "generator"})
    if generator and generator.get("content"):
        return {"detectedCms": [generator["content"]]}, 200

    # html.parser does not synthesize <html>; fragments are matched as a whole
    html_tag = soup.find("html")
    markup = html_tag.decode_contents() if html_tag else str(soup)
    if not markup.strip():
        return {"message": "Could not retrieve HTML content."}, 404

    detected = fingerprint_html(markup)
    if detected:
        return {"detectedCms": detected}, 200
    return {"message": "No specific CMS detected based on current fingerprints."}, 200
