from pydantic import BaseModel, Field, field_validator


class PortScanRequest(BaseModel):
    """Input for /api/port-scanner"""
    host: str | None = Field(default=None, example="localhost")
    ports: str | None = Field(default=None, example="80,443,8080-8090")


    @field_validator("host", "ports")
    @classmethod
    def _strip(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str | None) -> str | None:
        """Basic host validation; resolution is left to the socket layer."""
        if v is None:
            return None

        if any(char in v for char in [' ', '\t', '\n']):
            raise ValueError("Host cannot contain whitespace")

        return v

    def is_complete(self) -> bool:
        return bool(self.host) and bool(self.ports)
