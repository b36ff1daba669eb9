from typing import Optional
from datetime import datetime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Text, TIMESTAMP, Integer, func

class Base(DeclarativeBase):
    pass

class EmailLog(Base):
    __tablename__ = "email_logs"
    id:          Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at:  Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), index=True)
    recipient:   Mapped[str] = mapped_column(String(320))
    subject:     Mapped[str] = mapped_column(String(998))
    status:      Mapped[str] = mapped_column(String(16), index=True)
    error:       Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def as_line(self) -> str:
        stamp = self.created_at.isoformat() if self.created_at else "-"
        return f"{stamp} | {self.recipient} | {self.subject} | {self.status}"
