from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.match import MatchResponse, SelectCardRequest
from app.services.turn_engine import (
    claim_card,
    opponent_claim_card,
    opponent_reject_back,
    reject_card,
    select_card,
)

router = APIRouter(prefix="/matches", tags=["turns"])


@router.post("/{match_id}/select", response_model=MatchResponse)
async def select(
    match_id: str,
    body: SelectCardRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await select_card(db, match_id.upper(), current_user.player_id, body.index)
    return MatchResponse.from_match(match)


@router.post("/{match_id}/claim", response_model=MatchResponse)
async def claim(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await claim_card(db, match_id.upper(), current_user.player_id)
    return MatchResponse.from_match(match)


@router.post("/{match_id}/reject", response_model=MatchResponse)
async def reject(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await reject_card(db, match_id.upper(), current_user.player_id)
    return MatchResponse.from_match(match)


@router.post("/{match_id}/opponent-claim", response_model=MatchResponse)
async def opponent_claim(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await opponent_claim_card(db, match_id.upper(), current_user.player_id)
    return MatchResponse.from_match(match)


@router.post("/{match_id}/opponent-reject-back", response_model=MatchResponse)
async def opponent_reject(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await opponent_reject_back(db, match_id.upper(), current_user.player_id)
    return MatchResponse.from_match(match)
