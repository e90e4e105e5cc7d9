# shifted_app/core/recovery_store.py
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from shifted_app.core.config import settings, logger
from shifted_app.db.base import async_session
from shifted_app.db.models import RecoveryBridge


class BridgeNotFound(LookupError):
    pass


class BridgeUnavailable(Exception):
    """Reference exists but may not hand out tokens any more."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason  # "already_used" | "expired"


def _utc(dt: datetime) -> datetime:
    # sqlite hands back naive datetimes
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


async def create_bridge(access_token: str, refresh_token: str) -> str:
    async with async_session() as s:
        row = RecoveryBridge(access_token=access_token, refresh_token=refresh_token)
        s.add(row)
        await s.commit()
        logger.info(f"[recovery-bridge] stored rid={row.id}")
        return row.id


async def consume_bridge(rid: str) -> Tuple[str, str]:
    """
    Return the token pair for ``rid`` exactly once. Consumption is a
    conditional update on ``used_at IS NULL``; if that statement itself
    errors the tokens are still returned.
    """
    async with async_session() as s:
        row = (
            await s.execute(select(RecoveryBridge).where(RecoveryBridge.id == rid))
        ).scalar_one_or_none()
        if row is None:
            raise BridgeNotFound(rid)
        if row.used_at is not None:
            raise BridgeUnavailable("already_used")

        now = datetime.now(timezone.utc)
        if now - _utc(row.created_at) > timedelta(seconds=settings.recovery_bridge_ttl_seconds):
            raise BridgeUnavailable("expired")

        tokens = (row.access_token, row.refresh_token)

        try:
            res = await s.execute(
                update(RecoveryBridge)
                .where(RecoveryBridge.id == rid, RecoveryBridge.used_at.is_(None))
                .values(used_at=now)
            )
            await s.commit()
        except SQLAlchemyError as ex:
            logger.warning(f"[recovery-bridge] could not mark rid={rid} used: {ex}")
            return tokens

        if res.rowcount == 0:
            # someone else consumed it between the select and the update
            raise BridgeUnavailable("already_used")

        logger.info(f"[recovery-bridge] consumed rid={rid}")
        return tokens
