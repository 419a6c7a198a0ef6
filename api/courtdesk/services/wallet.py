"""Wallet service: affordability checks and balance mutations.

can_afford / check_wallet are pure and decide whether a price can be paid
from a balance, possibly running it negative down to the wallet's limit.

The async functions mutate the stored balance. Every mutation locks the
wallet row, updates the balance and appends a WalletTransaction, so the
ledger and the balance never drift apart.
"""

import logging

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courtdesk.models.wallet import TransactionType, Wallet, WalletTransaction
from courtdesk.records import WalletState

logger = logging.getLogger(__name__)


class Affordability(BaseModel):
    can_afford: bool
    use_negative_balance: bool = False
    negative_balance_amount: float = 0
    remaining_balance: float = 0


class InsufficientBalance(Exception):
    """Raised when a charge would take a wallet past its negative limit."""

    def __init__(self, affordability: Affordability):
        self.affordability = affordability
        super().__init__(f"Insufficient balance: short by {-affordability.remaining_balance}")


def can_afford(
    total: float,
    wallet_balance: float,
    negative_limit: float = 0,
    allow_negative: bool = False,
) -> Affordability:
    """Can total be paid from wallet_balance?

    Three outcomes: covered by the balance; covered by running the balance
    negative (only if allowed and the shortfall fits the limit); or not
    affordable, with remaining_balance reporting the (negative) shortfall.
    """
    if total <= wallet_balance:
        return Affordability(can_afford=True, remaining_balance=wallet_balance - total)

    if allow_negative:
        shortfall = total - wallet_balance
        if shortfall <= negative_limit:
            return Affordability(
                can_afford=True,
                use_negative_balance=True,
                negative_balance_amount=shortfall,
                remaining_balance=0 - shortfall,
            )

    return Affordability(can_afford=False, remaining_balance=wallet_balance - total)


def check_wallet(total: float, wallet: WalletState, allow_negative: bool | None = None) -> Affordability:
    """can_afford against a wallet record. Blocked wallets cannot pay."""
    if wallet.is_blocked:
        return Affordability(can_afford=False, remaining_balance=wallet.balance - total)

    allow = wallet.allow_negative_balance if allow_negative is None else allow_negative
    return can_afford(total, wallet.balance, wallet.negative_balance_limit, allow)


def wallet_state(wallet: Wallet, allow_negative: bool = False) -> WalletState:
    return WalletState(
        balance=wallet.balance,
        negative_balance_limit=wallet.negative_balance_limit,
        allow_negative_balance=allow_negative,
        is_blocked=wallet.is_blocked,
    )


async def get_wallet(db: AsyncSession, club_id: int, user_id: str, for_update: bool = False) -> Wallet | None:
    query = select(Wallet).where(Wallet.club_id == club_id, Wallet.user_id == user_id)
    if for_update:
        # Reload the row even if the session already holds it, so the balance is the locked one
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def _apply(
    db: AsyncSession,
    wallet: Wallet,
    amount: float,
    txn_type: TransactionType,
    reservation_id: int | None,
    description: str,
) -> WalletTransaction:
    """Core wallet mutation: adjust balance and record a transaction.

    The caller must hold the row lock (get_wallet(..., for_update=True)).
    """
    wallet.balance = wallet.balance + amount

    txn = WalletTransaction(
        wallet_id=wallet.id,
        amount=amount,
        balance_after=wallet.balance,
        transaction_type=txn_type,
        reservation_id=reservation_id,
        description=description,
    )
    db.add(txn)
    await db.flush()
    return txn


async def charge_reservation(
    db: AsyncSession,
    club_id: int,
    user_id: str,
    amount: float,
    reservation_id: int,
    allow_negative: bool = False,
) -> Affordability:
    """Charge a reservation to the user's wallet.

    Affordability is re-checked under the row lock so two concurrent charges
    cannot both spend the same balance. Raises InsufficientBalance (and
    charges nothing) when the wallet cannot cover the amount.
    """
    wallet = await get_wallet(db, club_id, user_id, for_update=True)
    if wallet is None:
        raise InsufficientBalance(Affordability(can_afford=False, remaining_balance=-amount))

    result = check_wallet(amount, wallet_state(wallet), allow_negative)
    if not result.can_afford:
        raise InsufficientBalance(result)

    if amount > 0:
        await _apply(
            db,
            wallet,
            amount=-amount,
            txn_type=TransactionType.RESERVATION_PAYMENT,
            reservation_id=reservation_id,
            description=f"Payment for reservation #{reservation_id}",
        )
    logger.info("Charged %.2f to wallet of user %s (reservation %s)", amount, user_id, reservation_id)
    return result


async def refund_cancellation(
    db: AsyncSession,
    club_id: int,
    user_id: str,
    amount: float,
    reservation_id: int,
) -> WalletTransaction | None:
    """Put the amount paid for a cancelled reservation back in the wallet."""
    if amount <= 0:
        return None

    wallet = await get_wallet(db, club_id, user_id, for_update=True)
    if wallet is None:
        logger.warning("No wallet for user %s to refund reservation %s", user_id, reservation_id)
        return None

    return await _apply(
        db,
        wallet,
        amount=amount,
        txn_type=TransactionType.CANCELLATION_REFUND,
        reservation_id=reservation_id,
        description=f"Refund for cancelled reservation #{reservation_id}",
    )


async def top_up(db: AsyncSession, club_id: int, user_id: str, amount: float, description: str) -> WalletTransaction:
    """Add money to a wallet, creating the wallet on first top-up."""
    wallet = await get_wallet(db, club_id, user_id, for_update=True)
    if wallet is None:
        wallet = Wallet(club_id=club_id, user_id=user_id, balance=0, negative_balance_limit=0)
        db.add(wallet)
        await db.flush()

    return await _apply(
        db,
        wallet,
        amount=amount,
        txn_type=TransactionType.TOP_UP,
        reservation_id=None,
        description=description,
    )
