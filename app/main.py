import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.errors import GameError, MatchConflictError, MatchNotFoundError, ResourceError
from app.routers import auth, matches, turns

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Backup Deathmatch",
    description="Two-player memory bluffing game: claim or reject face-down memories",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:8000", "http://127.0.0.1:8000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(matches.router)
app.include_router(turns.router)


def status_for(error: GameError) -> int:
    if isinstance(error, MatchNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, MatchConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, ResourceError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_400_BAD_REQUEST


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": exc.message, "code": exc.code})


@app.get("/health")
async def health_check():
    return {"status": "ok"}
