from pydantic import BaseModel, ConfigDict, Field


class SendEmailRequest(BaseModel):
    """
    Input for /api/send-html-email.

    `to`, `subject` and `template` are checked by the route so that a missing
    field gets the tool's own error message instead of a validation error.
    """
    model_config = ConfigDict(populate_by_name=True)

    to: str | None = Field(default=None, example="alice@example.com, bob@example.com")
    cc: str | None = None
    bcc: str | None = None
    subject: str | None = None
    template: str | None = Field(default=None, example="blank")
    message: str | None = None
    send_as_single_email: bool = Field(default=False, alias="sendAsSingleEmail")

    def is_complete(self) -> bool:
        return all(isinstance(v, str) for v in (self.to, self.subject, self.template))

    def recipients(self) -> list[str]:
        return [addr.strip() for addr in (self.to or "").split(",") if addr.strip()]
