import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from lostlink.db.db import get_session
from lostlink.db.repositories import MatchRepository
from lostlink.errors import MatchAlreadyConfirmedError, MatchForbiddenError, MatchNotFoundError
from lostlink.models.match import MatchRead
from lostlink.services.lifecycle import FullyConfirmed, MatchLifecycleManager
from lostlink.utils.auth_helper import get_current_user_id
from lostlink.utils.deps import get_lifecycle


router = APIRouter()


@router.get("/")
async def get_my_matches(
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    matches = MatchRepository(session).find_for_user(user_id)

    return {"matches": [MatchRead.model_validate(match) for match in matches]}


@router.get("/{match_id}")
async def get_match(
    match_id: uuid.UUID,
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    match = MatchRepository(session).find_by_id(match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")

    if not match.is_party(user_id):
        raise HTTPException(status_code=403, detail="Not authorized to view this match")

    return {"match": MatchRead.model_validate(match)}


@router.post("/{match_id}/confirm")
async def confirm_match(
    match_id: uuid.UUID,
    lifecycle: MatchLifecycleManager = Depends(get_lifecycle),
    user_id: str = Depends(get_current_user_id),
):
    try:
        outcome = await lifecycle.confirm_match(match_id, user_id)
    except MatchNotFoundError:
        raise HTTPException(status_code=404, detail="Match not found")
    except MatchForbiddenError:
        raise HTTPException(status_code=403, detail="Not authorized to confirm this match")
    except MatchAlreadyConfirmedError:
        raise HTTPException(status_code=409, detail="You already confirmed this match")

    if isinstance(outcome, FullyConfirmed):
        return {
            "status": "fully_confirmed",
            "match": outcome.match,
        }

    return {
        "status": "partially_confirmed",
        "match": outcome.match,
        "confirmed_side": outcome.confirmed_side.value,
        "awaiting_side": outcome.awaiting_side.value,
    }


@router.delete("/{match_id}")
async def delete_match(
    match_id: uuid.UUID,
    lifecycle: MatchLifecycleManager = Depends(get_lifecycle),
    user_id: str = Depends(get_current_user_id),
):
    try:
        lifecycle.delete_match(match_id, user_id)
    except MatchNotFoundError:
        raise HTTPException(status_code=404, detail="Match not found")
    except MatchForbiddenError:
        raise HTTPException(status_code=403, detail="Not authorized to delete this match")

    return {"ok": True}
