import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Game, Profile
from ..schemas import GameCreate, GameOut
from ..exceptions import http_problem
from .auth import require_admin

router = APIRouter(prefix="/games", tags=["games"])


def _game_out(game: Game) -> GameOut:
    return GameOut(id=game.id, name=game.name, slug=game.slug, mapPool=game.map_pool)


@router.get("", response_model=list[GameOut])
async def list_games(session: AsyncSession = Depends(get_session)):
    games = (await session.execute(select(Game).order_by(Game.name))).scalars().all()
    return [_game_out(g) for g in games]


@router.post("", response_model=GameOut, status_code=201)
async def create_game(
    body: GameCreate,
    session: AsyncSession = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    game = Game(id=uuid.uuid4().hex, name=body.name, slug=body.slug, map_pool=body.mapPool)
    session.add(game)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise http_problem(status_code=409, detail="slug already in use", code="game_slug_exists")
    return _game_out(game)


@router.get("/{slug}", response_model=GameOut)
async def get_game(slug: str, session: AsyncSession = Depends(get_session)):
    game = (
        await session.execute(select(Game).where(Game.slug == slug))
    ).scalar_one_or_none()
    if game is None:
        raise http_problem(status_code=404, detail="game not found", code="game_not_found")
    return _game_out(game)
