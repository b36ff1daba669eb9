import logging
import smtplib
from email.message import EmailMessage
from sqlalchemy.exc import SQLAlchemyError
from ..errors import BadRequest, UpstreamError
from ..infra.models import EmailLog
from ..schemas import SendEmailRequest
from ..settings import Settings
from .email_templates import resolve_body


logger = logging.getLogger(__name__)

MAX_LOG_LINES = 200


def _build_message(sender: str, to: str, subject: str, html: str, cc: str = "") -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to
    if cc:
        msg["Cc"] = cc
    msg["Subject"] = subject
    msg.set_content("This message requires an HTML-capable mail client.")
    msg.add_alternative(html, subtype="html")
    return msg


def _split(addresses: str | None) -> list[str]:
    return [a.strip() for a in (addresses or "").split(",") if a.strip()]


def _open_smtp(settings: Settings) -> smtplib.SMTP:
    """Connect to the relay, upgrade to TLS when offered and log in when credentials are set."""
    smtp = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_s)
    try:
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls()
            smtp.ehlo()
        if settings.smtp_user and settings.smtp_pass:
            smtp.login(settings.smtp_user, settings.smtp_pass)
    except Exception:
        smtp.close()
        raise
    return smtp


def _record(db, recipient: str, subject: str, status: str, error: str | None = None) -> None:
    try:
        db.add(EmailLog(recipient=recipient, subject=subject, status=status, error=error))
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to write mail log entry for {recipient}: {e}", exc_info=True)
        db.rollback()


def send_html_email(payload: SendEmailRequest, settings: Settings, db) -> dict:
    """
    Send an HTML mail through the SMTP relay.

    With sendAsSingleEmail one message goes out with To/Cc headers and Bcc
    recipients on the envelope only. Otherwise each `to` address gets its own
    message and cc/bcc are ignored.

    Raises:
        BadRequest: to, subject or template missing
        UpstreamError: the relay rejected a message or could not be reached
    """
    if not payload.is_complete():
        raise BadRequest("Missing or invalid fields: to, subject, template")

    subject = payload.subject
    html = resolve_body(settings.templates_dir, payload.template, payload.message)
    current = payload.to.strip()

    try:
        with _open_smtp(settings) as smtp:
            if payload.send_as_single_email:
                logger.info("Sending as a single email with CC/BCC.")
                to = payload.to.strip()
                cc = (payload.cc or "").strip()
                envelope = _split(to) + _split(cc) + _split(payload.bcc)
                msg = _build_message(settings.email_from, to, subject, html, cc=cc)
                smtp.send_message(msg, from_addr=settings.email_from, to_addrs=envelope)
                _record(db, to, subject, "SENT")
            else:
                logger.info("Sending as separate emails.")
                for addr in payload.recipients():
                    current = addr
                    msg = _build_message(settings.email_from, addr, subject, html)
                    smtp.send_message(msg, from_addr=settings.email_from, to_addrs=[addr])
                    _record(db, addr, subject, "SENT")
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"[send-email] Error sending to {current}: {e}")
        _record(db, current, subject, "FAILED", error=str(e)[:2000])
        raise UpstreamError("Failed to send emails", details=str(e))

    return {"ok": True}


def list_email_logs(db, limit: int = MAX_LOG_LINES) -> list[str]:
    """Most recent mail log lines, newest first; empty when the store cannot be read."""
    try:
        rows = db.query(EmailLog).order_by(EmailLog.id.desc()).limit(limit).all()
    except SQLAlchemyError as e:
        logger.warning(f"Mail log unavailable: {e}")
        return []
    return [row.as_line() for row in rows]
