"""Candidate onboarding completion for sign-ins that did not come through a tenant page."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from campusgate.audit.logger import audit
from campusgate.auth.flow import AuthFlow
from campusgate.exceptions import IdentityNotFound, StorageError
from campusgate.web.dependencies import get_auth_flow
from campusgate.web.session import issue_session, require_session

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/candidate", tags=["candidate"])


class OnboardingRequest(BaseModel):
    display_name: str = ""


@router.post("/onboarding")
async def complete_onboarding(
    body: OnboardingRequest,
    request: Request,
    response: Response,
    flow: AuthFlow = Depends(get_auth_flow),
) -> dict[str, Any]:
    """Persist the candidate record and re-issue the session with its durable id."""
    session = require_session(request)
    if not session.is_candidate:
        raise HTTPException(status_code=400, detail="Onboarding is only for candidates")

    try:
        payload = await flow.complete_onboarding(session, body.display_name)
    except (SQLAlchemyError, OSError, StorageError, IdentityNotFound) as exc:
        logger.exception("onboarding_failed")
        raise HTTPException(status_code=500, detail="Internal server error") from exc

    issue_session(response, payload)
    await audit(
        request,
        action="candidate.onboarded",
        tenant_id=payload.tenant_id,
        identity_id=payload.identity_id,
    )
    return {
        "status": "ok",
        "identity_id": payload.identity_id,
        "tenant_slug": payload.tenant_slug,
    }
