"""
ShopSession model - Shopify sessions kept for Admin API access.

Rows are written by the Shopify auth flow and read here only to obtain the
shop's access token. All rows for a shop are deleted on app uninstall.

SECURITY:
- access_token is NEVER logged or returned in API responses
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, DateTime, Text, Index

from zenloop_surveys.db_base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShopSession(Base):
    """Per-shop session holding the Admin API access token."""

    __tablename__ = "shopify_sessions"

    id = Column(
        String(255),
        primary_key=True,
        comment="Session ID (offline sessions use 'offline_{shop}')"
    )
    shop = Column(
        String(255),
        nullable=False,
        comment="The shop's myshopify.com domain"
    )
    state = Column(String(255), nullable=True)
    is_online = Column(Boolean, nullable=False, default=False)
    scope = Column(Text, nullable=True)
    expires = Column(DateTime(timezone=True), nullable=True)

    # NEVER log this value
    access_token = Column(Text, nullable=True)

    user_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_shopify_sessions_shop", "shop"),
    )

    def __repr__(self) -> str:
        return f"<ShopSession(id={self.id}, shop={self.shop}, is_online={self.is_online})>"
