from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models.otp_code import ChannelType, OtpCode


class OtpStore:
    """Persistence for issued codes on top of a request-scoped SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def create(
        self,
        *,
        channel_type: ChannelType,
        recipient: str,
        code: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> OtpCode:
        record = OtpCode(
            channel_type=channel_type,
            recipient=recipient,
            code=code,
            created_at=created_at,
            expires_at=expires_at,
            verified=False,
        )
        self._db.add(record)
        self._db.flush()
        return record

    def find_latest_unverified(self, *, channel_type: ChannelType, recipient: str, code: str) -> OtpCode | None:
        statement = (
            select(OtpCode)
            .where(
                OtpCode.channel_type == channel_type,
                OtpCode.recipient == recipient,
                OtpCode.code == code,
                OtpCode.verified.is_(False),
            )
            .order_by(OtpCode.created_at.desc())
            .limit(1)
        )
        return self._db.execute(statement).scalars().first()

    def mark_verified(self, record_id: str) -> bool:
        """Flip ``verified`` from false to true; returns False if another request got there first."""
        result = self._db.execute(
            update(OtpCode)
            .where(OtpCode.id == record_id, OtpCode.verified.is_(False))
            .values(verified=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def commit(self) -> None:
        self._db.commit()

    def rollback(self) -> None:
        self._db.rollback()
