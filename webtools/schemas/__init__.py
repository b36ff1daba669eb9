from .port_scan_request import PortScanRequest
from .url_request import URLRequest, normalize_url
from .send_email_request import SendEmailRequest
