from pydantic import BaseModel, Field, field_validator


class URLRequest(BaseModel):
    """Input for the tools that take a single page URL (/api/analyze, /api/find-emails)."""
    url: str | None = Field(default=None, example="example.com")


    @field_validator("url")
    @classmethod
    def _strip(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


def normalize_url(url: str) -> str:
    """Prepend https:// when the URL carries no http(s) scheme."""
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        return f"https://{url}"
    return url
