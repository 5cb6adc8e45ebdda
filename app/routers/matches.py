from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.match import LeaveResponse, MatchResponse, MatchSummaryResponse
from app.services.match_service import (
    complete_intro,
    create_match,
    get_match_for_user,
    get_match_summary,
    join_match,
    leave_match,
    start_match,
)
from app.services.match_store import read_match

router = APIRouter(prefix="/matches", tags=["matches"])

# Service errors (app.errors.GameError) are turned into responses by the
# handler registered in app.main.


@router.post("", response_model=MatchResponse, status_code=status.HTTP_201_CREATED)
async def create(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await create_match(db, current_user)
    return MatchResponse.from_match(match)


@router.get("/current", response_model=MatchResponse | None)
async def current(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The match the caller is seated in, or null."""
    match = await get_match_for_user(db, current_user)
    return MatchResponse.from_match(match) if match is not None else None


@router.get("/{match_id}", response_model=MatchResponse)
async def get(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await read_match(db, match_id.upper())
    return MatchResponse.from_match(match)


@router.post("/{match_id}/join", response_model=MatchResponse)
async def join(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await join_match(db, match_id.upper(), current_user)
    return MatchResponse.from_match(match)


@router.post("/{match_id}/leave", response_model=LeaveResponse)
async def leave(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match_id = match_id.upper()
    match = await leave_match(db, match_id, current_user)
    if match is None:
        return LeaveResponse(match_id=match_id, deleted=True)
    return LeaveResponse(match_id=match_id, deleted=False, match=MatchResponse.from_match(match))


@router.post("/{match_id}/start", response_model=MatchResponse)
async def start(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await start_match(db, match_id.upper(), current_user)
    return MatchResponse.from_match(match)


@router.post("/{match_id}/intro/complete", response_model=MatchResponse)
async def finish_intro(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    match = await complete_intro(db, match_id.upper(), current_user)
    return MatchResponse.from_match(match)


@router.get("/{match_id}/summary", response_model=MatchSummaryResponse)
async def summary(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await get_match_summary(db, match_id.upper())
