"""ORM model for encrypted records."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]

from sqlalchemy import DateTime, LargeBinary, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for vault tables."""


class EncryptedRecord(Base):
    """One encrypted blob per ``(namespace, record_key)``.

    ``version`` is the compare-and-set token: every write is an
    ``UPDATE ... WHERE version = :expected`` that sets a fresh random token,
    so a token is never seen twice even across a delete and re-insert.
    """

    __tablename__ = "encrypted_records"

    namespace: Mapped[str] = mapped_column(
        String(128), primary_key=True, comment="Account name tag"
    )
    record_key: Mapped[str] = mapped_column(
        String(192), primary_key=True, comment="kind:hash(public_key):hash(pool_address)"
    )
    ciphertext: Mapped[bytes] = mapped_column(
        LargeBinary, nullable=False, comment="Nonce-prefixed AEAD ciphertext"
    )
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<EncryptedRecord {self.namespace}/{self.record_key[:24]} {self.version[:8]}>"
