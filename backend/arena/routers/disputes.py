from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Profile
from ..schemas import DisputeCreate, DisputeOut
from ..services import disputes as dispute_service
from .auth import get_current_user

router = APIRouter(prefix="/matches", tags=["disputes"])


@router.get("/{mid}/disputes", response_model=list[DisputeOut])
async def list_disputes(
    mid: str,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    disputes = await dispute_service.list_disputes(session, mid)
    return [dispute_service.dispute_to_out(d) for d in disputes]


@router.post("/{mid}/disputes", response_model=DisputeOut, status_code=201)
async def report_dispute(
    mid: str,
    body: DisputeCreate,
    session: AsyncSession = Depends(get_session),
    user: Profile = Depends(get_current_user),
):
    dispute = await dispute_service.report_dispute(
        session, mid, user, body.reason, body.teamId
    )
    return dispute_service.dispute_to_out(dispute)
