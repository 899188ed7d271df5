import uuid
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from lostfound.db.db import get_session
from lostfound.services import claims as claim_service
from lostfound.utils.auth_helper import CallerIdentity, get_current_user_required


router = APIRouter()


class ClaimCreateRequest(BaseModel):
    item_id: uuid.UUID
    message: Optional[str] = None
    proof: Optional[str] = None  # older clients send the proof text under this name


class ClaimDecisionRequest(BaseModel):
    decision: str  # "approved" or "rejected"
    meetup_address: Optional[str] = None


@router.post("/create", status_code=201)
def create_claim(
    payload: ClaimCreateRequest,
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    claim = claim_service.create_claim(
        session,
        current_user,
        payload.item_id,
        payload.proof or payload.message,
    )

    return {
        "ok": True,
        "claim_id": str(claim.id),
    }


@router.get("/mine")
def get_my_claims(
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    return {"claims": claim_service.list_my_claims(session, current_user)}


@router.get("/item/{item_id}")
def get_claims_for_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    """
    All claims on an item, newest first - accessible only by the finder.
    """
    return {"claims": claim_service.list_claims_for_item(session, current_user, item_id)}


@router.post("/{claim_id}/decide")
def decide_claim(
    claim_id: uuid.UUID,
    payload: ClaimDecisionRequest,
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    return claim_service.decide_claim(
        session,
        current_user,
        claim_id,
        payload.decision,
        payload.meetup_address,
    )


@router.post("/{claim_id}/received")
def mark_claim_received(
    claim_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    claim = claim_service.mark_received(session, current_user, claim_id)

    return {
        "ok": True,
        "claim": claim,
    }
