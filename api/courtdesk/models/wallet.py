"""Wallet models: a user's prepaid balance at a club, and its ledger."""

import enum

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courtdesk.models.base import Base, TimestampMixin


class TransactionType(enum.StrEnum):
    TOP_UP = "top_up"
    RESERVATION_PAYMENT = "reservation_payment"
    CANCELLATION_REFUND = "cancellation_refund"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class Wallet(TimestampMixin, Base):
    """Balance may go below zero, down to -negative_balance_limit."""

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(primary_key=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    balance: Mapped[float] = mapped_column(default=0, nullable=False)
    negative_balance_limit: Mapped[float] = mapped_column(default=0, nullable=False)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="TRY", nullable=False)

    transactions: Mapped[list["WalletTransaction"]] = relationship(back_populates="wallet", lazy="raise")

    __table_args__ = (Index("ix_wallets_club_user", "club_id", "user_id", unique=True),)

    def __repr__(self) -> str:
        return f"<Wallet user={self.user_id} club={self.club_id} balance={self.balance}>"


class WalletTransaction(TimestampMixin, Base):
    """A single balance movement. Positive is money in, negative a debit."""

    __tablename__ = "wallet_transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    wallet_id: Mapped[int] = mapped_column(ForeignKey("wallets.id"), nullable=False)
    amount: Mapped[float] = mapped_column(nullable=False)
    balance_after: Mapped[float] = mapped_column(nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, name="transaction_type", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    reservation_id: Mapped[int | None] = mapped_column(ForeignKey("reservations.id"))
    description: Mapped[str] = mapped_column(Text, nullable=False)

    wallet: Mapped["Wallet"] = relationship(back_populates="transactions")

    __table_args__ = (Index("ix_wallet_txn_wallet", "wallet_id"),)

    def __repr__(self) -> str:
        return f"<WalletTransaction {self.transaction_type.value} {self.amount} wallet={self.wallet_id}>"
