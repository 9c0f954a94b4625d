from fastapi import Depends, Request
from sqlmodel import Session

from lostlink.db.db import get_session
from lostlink.services.lifecycle import MatchLifecycleManager
from lostlink.services.pipeline import MatchingServices


def get_services(request: Request) -> MatchingServices:
    return request.app.state.services


def get_lifecycle(
    session: Session = Depends(get_session),
    services: MatchingServices = Depends(get_services),
) -> MatchLifecycleManager:
    return services.lifecycle(session)
