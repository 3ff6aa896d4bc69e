"""
Lookups over the Shopify session table.

Offline sessions are preferred because they hold the shop-scoped token the
app uses for background and extension-originated calls.
"""

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from zenloop_surveys.models.shop_session import ShopSession

logger = logging.getLogger(__name__)


def find_session_for_shop(db: Session, shop_domain: str) -> Optional[ShopSession]:
    """Return the shop's session that holds an access token, offline first."""
    stmt = (
        select(ShopSession)
        .where(ShopSession.shop == shop_domain)
        .where(ShopSession.access_token.isnot(None))
        .order_by(ShopSession.is_online.asc(), ShopSession.updated_at.desc())
    )
    return db.execute(stmt).scalars().first()


def delete_sessions_for_shop(db: Session, shop_domain: str) -> int:
    """
    Delete every session row for the shop.

    Returns the number of rows deleted; zero is not an error.
    """
    result = db.execute(delete(ShopSession).where(ShopSession.shop == shop_domain))
    db.commit()

    deleted = result.rowcount or 0
    logger.info("Deleted shop sessions", extra={
        "shop_domain": shop_domain,
        "deleted_sessions": deleted,
    })
    return deleted
