import logging
from fastapi import APIRouter, status
from fastapi.responses import HTMLResponse, JSONResponse
from ..deps import db_dependency, probe_dependency, settings_dependency
from ..errors import BadRequest, InternalError, ToolError
from ..schemas import PortScanRequest, SendEmailRequest, URLRequest, normalize_url
from ..tasks.analyze import analyze_url
from ..tasks.custom_detect import detect_cms
from ..tasks.email_templates import list_templates, load_template
from ..tasks.find_emails import find_emails
from ..tasks.ip_lookup import ip_lookup
from ..tasks.pagespeed import run_pagespeed
from ..tasks.port_scan import port_scan
from ..tasks.send_email import list_email_logs, send_html_email


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Tools"])


@router.post("/port-scanner", summary="Scan TCP Ports", status_code=status.HTTP_200_OK)
async def scan_ports(payload: PortScanRequest, probe: probe_dependency, settings: settings_dependency) -> dict:
    """Probe the requested ports concurrently and return the open ones."""
    if not payload.is_complete():
        raise BadRequest("Host and ports are required.")
    try:
        found = await port_scan(payload.host, payload.ports, probe, max_ports=settings.scan_max_ports)
        return {"openPorts": found}
    except ToolError:
        raise
    except Exception as e:
        logger.error(f"Port scan error for {payload.host}: {e}", exc_info=True)
        raise InternalError("An internal server error occurred during the port scan.")


@router.post("/analyze", summary="Detect Web Technologies", status_code=status.HTTP_200_OK)
def analyze(payload: URLRequest, settings: settings_dependency) -> dict:
    """Fetch a page and match it against the technology signature tables."""
    if not payload.url:
        raise BadRequest("URL is required")
    try:
        return analyze_url(normalize_url(payload.url), timeout_s=settings.analyze_timeout_s)
    except ToolError:
        raise
    except Exception as e:
        logger.error(f"Analysis error for {payload.url}: {e}", exc_info=True)
        raise InternalError("Failed to analyze the website.")


@router.get("/custom-detect", summary="Detect CMS", status_code=status.HTTP_200_OK)
def custom_detect(settings: settings_dependency, url: str | None = None):
    """Identify the CMS from the generator meta tag or markup fingerprints."""
    try:
        body, status_code = detect_cms(url, timeout_s=settings.custom_detect_timeout_s)
    except ToolError:
        raise
    except Exception as e:
        logger.error(f"CMS detection error for {url}: {e}", exc_info=True)
        raise InternalError("An internal server error occurred.")
    return JSONResponse(body, status_code=status_code)


@router.post("/find-emails", summary="Find Emails on a Page", status_code=status.HTTP_200_OK)
def find_page_emails(payload: URLRequest, settings: settings_dependency) -> dict:
    """Extract email addresses from a page's markup and links."""
    if not payload.url:
        raise BadRequest("Missing URL")
    try:
        return find_emails(normalize_url(payload.url), timeout_s=settings.find_emails_timeout_s)
    except ToolError:
        raise
    except Exception as e:
        logger.error(f"Email search error for {payload.url}: {e}", exc_info=True)
        raise InternalError("An internal server error occurred.")


@router.get("/ip", summary="Public IP Lookup", status_code=status.HTTP_200_OK)
def what_is_my_ip(settings: settings_dependency) -> dict:
    """Public IP address of the server with its ISP and location."""
    try:
        return ip_lookup(settings.ip_lookup_url, timeout_s=settings.ip_lookup_timeout_s)
    except ToolError:
        raise
    except Exception as e:
        logger.error(f"Error in /api/ip route: {e}", exc_info=True)
        raise InternalError("Could not determine IP address due to an unexpected error.")


@router.get("/pagespeed", summary="PageSpeed Audit", status_code=status.HTTP_200_OK)
def pagespeed(settings: settings_dependency, url: str | None = None):
    """Proxy a desktop PageSpeed Insights audit; the upstream body and status pass through."""
    try:
        body, status_code = run_pagespeed(
            url,
            api_url=settings.pagespeed_api_url,
            api_key=settings.pagespeed_api_key,
            timeout_s=settings.pagespeed_timeout_s,
        )
    except ToolError:
        raise
    except Exception as e:
        logger.error(f"PageSpeed error for {url}: {e}", exc_info=True)
        raise InternalError("An internal server error occurred.")
    return JSONResponse(body, status_code=status_code)


@router.get("/templates", summary="List Email Templates", status_code=status.HTTP_200_OK)
def templates(settings: settings_dependency) -> list[str]:
    return list_templates(settings.templates_dir)


@router.get("/load-template/{template}", summary="Load Email Template", response_class=HTMLResponse)
def load_email_template(template: str, settings: settings_dependency):
    return HTMLResponse(load_template(settings.templates_dir, template))


@router.post("/send-html-email", summary="Send HTML Email", status_code=status.HTTP_200_OK)
def send_email(payload: SendEmailRequest, settings: settings_dependency, db: db_dependency) -> dict:
    """Send a templated HTML mail, either as one message or one per recipient."""
    try:
        return send_html_email(payload, settings, db)
    except ToolError:
        raise
    except Exception as e:
        logger.error(f"[send-email] Unexpected error: {e}", exc_info=True)
        raise InternalError("Failed to send emails", details="Unexpected server error")


@router.get("/logs", summary="Mail Log", status_code=status.HTTP_200_OK)
def mail_logs(db: db_dependency) -> dict:
    return {"logs": list_email_logs(db)}
