import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Profile, Team, TeamMember
from ..schemas import (
    InvitationOut,
    TeamCreate,
    TeamMemberIn,
    TeamMemberOut,
    TeamOut,
)
from ..exceptions import http_problem
from ..services.invitations import invitation_to_out, list_team_invitations
from ..services.teams import can_manage_team, get_team
from .auth import get_current_user

router = APIRouter(prefix="/teams", tags=["teams"])


async def _team_out(session: AsyncSession, team: Team) -> TeamOut:
    rows = (
        await session.execute(
            select(TeamMember, Profile.username)
            .join(Profile, Profile.id == TeamMember.profile_id)
            .where(TeamMember.team_id == team.id)
            .order_by(Profile.username)
        )
    ).all()
    return TeamOut(
        id=team.id,
        name=team.name,
        logoUrl=team.logo_url,
        createdBy=team.created_by,
        members=[
            TeamMemberOut(
                id=m.id, profileId=m.profile_id, username=username, role=m.role
            )
            for m, username in rows
        ],
    )


@router.post("", response_model=TeamOut, status_code=201)
async def create_team(
    body: TeamCreate,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    team = Team(id=uuid.uuid4().hex, name=body.name, logo_url=body.logoUrl, created_by=user.id)
    session.add(team)
    await session.flush()
    session.add(
        TeamMember(id=uuid.uuid4().hex, team_id=team.id, profile_id=user.id, role="owner")
    )
    await session.commit()
    return await _team_out(session, team)


@router.get("/{team_id}", response_model=TeamOut)
async def read_team(team_id: str, session: AsyncSession = Depends(get_session)):
    team = await get_team(session, team_id)
    return await _team_out(session, team)


@router.post("/{team_id}/members", response_model=TeamOut)
async def add_member(
    team_id: str,
    body: TeamMemberIn,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    team = await get_team(session, team_id)
    if not await can_manage_team(session, user.id, team.id):
        raise http_problem(status_code=403, detail="forbidden", code="team_forbidden")
    if await session.get(Profile, body.profileId) is None:
        raise http_problem(status_code=404, detail="profile not found", code="profile_not_found")
    session.add(
        TeamMember(
            id=uuid.uuid4().hex, team_id=team.id, profile_id=body.profileId, role=body.role
        )
    )
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise http_problem(
            status_code=409, detail="profile is already a member", code="team_member_exists"
        )
    return await _team_out(session, team)


@router.get("/{team_id}/invitations", response_model=list[InvitationOut])
async def team_invitations(
    team_id: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    """Pending invitations addressed to the team."""
    rows = await list_team_invitations(session, team_id)
    return [invitation_to_out(inv, name) for inv, name in rows]
