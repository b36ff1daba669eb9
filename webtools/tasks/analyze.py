import logging
import re
from typing import Mapping, NamedTuple, Optional
import requests
from requests.exceptions import HTTPError, RequestException, Timeout
from ..errors import UpstreamError


logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class Signature(NamedTuple):
    name: str
    pattern: re.Pattern
    header: Optional[str] = None


def _sig(name: str, pattern: str, header: Optional[str] = None, flags: int = re.IGNORECASE) -> Signature:
    return Signature(name, re.compile(pattern, flags), header)


HTML_SIGNATURES = [
    # JS frameworks & libraries
    _sig("Next.js", r'<div id="__next"|<script id="__NEXT_DATA__"|/_next/static/'),
    _sig("React", r"data-reactroot"),
    _sig("Vue.js", r'<div id="app"|data-v-[a-f0-9]{8}'),
    _sig("Angular", r"ng-version"),
    _sig("SvelteKit", r"data-sveltekit-preload-data"),
    _sig("Gatsby", r'<div id="___gatsby"'),
    _sig("Ember.js", r'<div id="ember-view"'),
    _sig("jQuery", r"jquery\.js|jquery\.min\.js"),
    # CMS & platforms
    _sig("WordPress", r'(wp-content|wp-includes|content="WordPress)'),
    _sig("Shopify", r"(Shopify\.theme|cdn\.shopify\.com|\.myshopify\.com)"),
    _sig("Wix", r"(wix\.com|static\.wixstatic\.com)"),
    _sig("Squarespace", r"squarespace\.com"),
    _sig("Joomla", r'<meta name="generator" content="Joomla!'),
    _sig("Drupal", r'<meta name="Generator" content="Drupal'),
    _sig("Ghost", r'<meta name="generator" content="Ghost'),
    # E-commerce
    _sig("WooCommerce", r"/plugins/woocommerce/"),
    _sig("Magento", r"magento/backend/en_US/requirejs-config\.js"),
    _sig("BigCommerce", r"cdn\.bigcommerce\.com"),
    # UI frameworks
    _sig("Bootstrap", r"bootstrap\.min\.css|data-bs-theme"),
    _sig("Tailwind CSS", r"<style>[\s\S]*--tw-"),
    # Static site generators
    _sig("Hugo", r'<meta name="generator" content="Hugo'),
    _sig("Jekyll", r'<meta name="generator" content="Jekyll'),
    # Analytics
    _sig("Google Analytics", r"googletagmanager\.com/gtag/js|google-analytics\.com/analytics\.js"),
]

HEADER_SIGNATURES = [
    _sig("PHP", r"PHP", header="x-powered-by"),
    _sig("ASP.NET", r"ASP\.NET", header="x-powered-by"),
    _sig("Express", r"Express", header="x-powered-by"),
    _sig("Nginx", r"nginx", header="server"),
    _sig("Apache", r"Apache", header="server"),
    _sig("Cloudflare", r"cloudflare", header="server"),
    _sig("Vercel", r".*", header="x-vercel-id", flags=0),
    _sig("Netlify", r"Netlify", header="server"),
]

# (more specific, more general): when both match only the specific one is kept
PRECEDENCE = [
    ("Next.js", "React"),
    ("WooCommerce", "WordPress"),
]

GENERIC = "Generic HTML/JS"
NOTHING_DETECTED = "No specific technologies detected."


def detect_technologies(html: str, headers: Mapping[str, str]) -> list[str]:
    """Match the page body and response headers against the signature tables."""
    detected: list[str] = []

    for sig in HTML_SIGNATURES:
        if sig.pattern.search(html) and sig.name not in detected:
            detected.append(sig.name)

    for sig in HEADER_SIGNATURES:
        value = headers.get(sig.header)
        if value and sig.pattern.search(value) and sig.name not in detected:
            detected.append(sig.name)

    for specific, general in PRECEDENCE:
        if specific in detected and general in detected:
            detected.remove(general)

    if not detected and html:
        detected.append(GENERIC)

    return detected or [NOTHING_DETECTED]


def analyze_url(url: str, timeout_s: float = 8.0) -> dict:
    """
    Fetch a page and report the technologies it appears to use.

    Args:
        url: page URL, scheme already normalized
        timeout_s: request timeout

    Returns:
        dict: analyzedUrl and the detected technology names

    Raises:
        UpstreamError: fetching the page failed or returned a non-2xx status
    """
    logger.info(f"Analyzing technologies for: {url}")
    try:
        resp = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout_s)
        resp.raise_for_status()
    except Timeout:
        logger.warning(f"Analysis request timed out after {timeout_s}s for {url}")
        raise UpstreamError("Failed to analyze the website.", details=f"Request timeout after {timeout_s}s")
    except HTTPError as e:
        status_code = getattr(getattr(e, "response", None), "status_code", "unknown")
        logger.warning(f"HTTP error {status_code} from {url}")
        raise UpstreamError("Failed to analyze the website.", details=f"Failed to fetch URL: {e}")
    except RequestException as e:
        logger.warning(f"Analysis request failed for {url}: {e}")
        raise UpstreamError("Failed to analyze the website.", details=str(e))

    detected = detect_technologies(resp.text, resp.headers)
    logger.info(f"Detected on {url}: {', '.join(detected)}")
    return {"analyzedUrl": url, "detected": detected}
