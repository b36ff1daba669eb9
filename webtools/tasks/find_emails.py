import logging
import re
from urllib.parse import urljoin
import requests
from bs4 import BeautifulSoup
from requests.exceptions import RequestException
from ..errors import UpstreamError


logger = logging.getLogger(__name__)

EMAIL_REGEX = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")


def extract_emails(html: str, hrefs: list[str]) -> list[str]:
    """Email-like substrings of the page markup and its link targets, first-seen order, no duplicates."""
    text = html + " " + " ".join(hrefs)
    return list(dict.fromkeys(EMAIL_REGEX.findall(text)))


def find_emails(url: str, timeout_s: float = 20.0) -> dict:
    """
    Collect the email addresses published on a page.

    Both the markup and every anchor href (resolved against the page URL) are
    searched, so mailto: links are picked up as well as visible text.
    """
    logger.info(f"Searching for emails on: {url}")
    try:
        resp = requests.get(url, timeout=timeout_s)
        resp.raise_for_status()
    except RequestException as e:
        logger.warning(f"Email search failed to fetch {url}: {e}")
        raise UpstreamError(str(e))

    html = resp.text
    soup = BeautifulSoup(html, "html.parser")
    hrefs = [urljoin(url, a["href"]) for a in soup.find_all("a", href=True)]

    emails = extract_emails(html, hrefs)
    logger.info(f"Found {len(emails)} email(s) on {url}")
    return {"emails": emails}
