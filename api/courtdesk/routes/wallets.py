"""Wallet routes: balance, affordability checks and top-ups."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from courtdesk.core.database import get_db
from courtdesk.core.dependencies import get_club
from courtdesk.models.club import Club
from courtdesk.models.wallet import Wallet
from courtdesk.schemas import AffordabilityOut, TopUpRequest, WalletOut
from courtdesk.services.wallet import check_wallet, get_wallet, top_up, wallet_state

router = APIRouter(prefix="/clubs/{slug}/wallets", tags=["wallets"])


async def _wallet_or_404(db: AsyncSession, club: Club, user_id: str) -> Wallet:
    wallet = await get_wallet(db, club.id, user_id)
    if wallet is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wallet not found")
    return wallet


@router.get("/{user_id}", response_model=WalletOut)
async def get_balance(user_id: str, club: Club = Depends(get_club), db: AsyncSession = Depends(get_db)):
    return await _wallet_or_404(db, club, user_id)


@router.get("/{user_id}/affordability", response_model=AffordabilityOut)
async def affordability(
    user_id: str,
    total: float = Query(ge=0),
    allow_negative: bool = False,
    club: Club = Depends(get_club),
    db: AsyncSession = Depends(get_db),
):
    wallet = await _wallet_or_404(db, club, user_id)
    return AffordabilityOut(total=total, result=check_wallet(total, wallet_state(wallet, allow_negative)))


@router.post("/{user_id}/top-ups", response_model=WalletOut)
async def add_funds(
    user_id: str,
    body: TopUpRequest,
    club: Club = Depends(get_club),
    db: AsyncSession = Depends(get_db),
):
    await top_up(db, club.id, user_id, body.amount, body.description)
    return await _wallet_or_404(db, club, user_id)
