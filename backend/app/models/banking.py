"""Payout bank account linked through Plaid."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class BankConnection(Base):
    """The single payout account of a business (one row per business)."""

    __tablename__ = "plaid_bank_connections"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("business_profiles.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    plaid_access_token: Mapped[str] = mapped_column(String(255), nullable=False)
    plaid_item_id: Mapped[str] = mapped_column(String(255), nullable=False)
    plaid_account_id: Mapped[str] = mapped_column(String(255), nullable=False)

    institution_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    account_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    account_mask: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    account_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    account_subtype: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    connected_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
