from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Profile
from ..schemas import (
    InvitationAcceptOut,
    InvitationCreate,
    InvitationOut,
    TeamSearchOut,
)
from ..services import invitations as invitation_service
from .auth import get_current_user

# Match-scoped routes live under /matches, answers under /invitations.
router = APIRouter(tags=["invitations"])


@router.get("/matches/{mid}/invitations/search", response_model=list[TeamSearchOut])
async def search_invitable_teams(
    mid: str,
    q: str = Query("", max_length=100),
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    teams = await invitation_service.search_teams(session, mid, q)
    return [TeamSearchOut(id=t.id, name=t.name, logoUrl=t.logo_url) for t in teams]


@router.get("/matches/{mid}/invitations", response_model=list[InvitationOut])
async def list_match_invitations(
    mid: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    rows = await invitation_service.list_match_invitations(session, mid)
    return [invitation_service.invitation_to_out(inv, name) for inv, name in rows]


@router.post("/matches/{mid}/invitations", response_model=InvitationOut, status_code=201)
async def invite_team(
    mid: str,
    body: InvitationCreate,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    invitation = await invitation_service.invite_team(session, mid, body.teamId, user)
    team = await invitation_service.get_team(session, invitation.team_id)
    return invitation_service.invitation_to_out(invitation, team.name)


@router.post("/invitations/{invitation_id}/accept", response_model=InvitationAcceptOut)
async def accept_invitation(
    invitation_id: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    invitation, participant, team = await invitation_service.accept_invitation(
        session, invitation_id, user
    )
    return InvitationAcceptOut(
        invitation=invitation_service.invitation_to_out(invitation, team.name),
        participantId=participant.id,
        setupPath=invitation_service.setup_path(invitation.match_id),
    )


@router.post("/invitations/{invitation_id}/decline", response_model=InvitationOut)
async def decline_invitation(
    invitation_id: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    invitation, team = await invitation_service.decline_invitation(
        session, invitation_id, user
    )
    return invitation_service.invitation_to_out(invitation, team.name)


@router.delete("/invitations/{invitation_id}", status_code=204)
async def cancel_invitation(
    invitation_id: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    await invitation_service.cancel_invitation(session, invitation_id, user)
