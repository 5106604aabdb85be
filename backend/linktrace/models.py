import json

from sqlalchemy import Column, String, DateTime, Text, BigInteger, Integer, Float, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator
from sqlalchemy.dialects import mysql

from .database import Base

# SQLite only auto-increments INTEGER PRIMARY KEY
IdType = BigInteger().with_variant(Integer(), "sqlite")

# Codes are case-sensitive; MySQL's default collation is not
CodeType = String(20).with_variant(mysql.VARCHAR(20, collation="utf8mb4_bin"), "mysql")


class FingerprintJSON(TypeDecorator):
    """
    JSON column that always reads back as a dict.

    Rows written by older builds stored the fingerprint as a JSON-encoded
    string; those are decoded here so callers only ever see a mapping.
    """

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return dict(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return {}
        if isinstance(value, (str, bytes)):
            try:
                value = json.loads(value)
            except ValueError:
                return {}
        return value if isinstance(value, dict) else {}


class Link(Base):
    """Model for storing shortened links."""

    __tablename__ = "links"

    id = Column(IdType, primary_key=True, autoincrement=True)
    short_code = Column(CodeType, unique=True, nullable=False, index=True)
    original_url = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    clicks = relationship(
        "Click",
        back_populates="link",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Link(code={self.short_code}, url={self.original_url[:50]}...)>"


class Click(Base):
    """One visit through a short code, with its telemetry."""

    __tablename__ = "clicks"

    id = Column(IdType, primary_key=True, autoincrement=True)
    link_id = Column(IdType, ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    country = Column(String(64), nullable=True)
    city = Column(String(128), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    clicked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    webrtc_ip = Column(String(64), nullable=True)
    fingerprint = Column(FingerprintJSON, nullable=True)

    link = relationship("Link", back_populates="clicks")

    def __repr__(self):
        return f"<Click(id={self.id}, link_id={self.link_id}, at={self.clicked_at})>"
