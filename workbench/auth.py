"""
Sign-in routes: the OpenID Connect code flow, current user and logout.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool

from workbench.config import Settings, get_settings
from workbench.db import DbClient
from workbench.dependencies import get_db_client, get_session_context
from workbench.errors import IdentityProviderError, IdentityResolutionError
from workbench.identity import IdentityAssertion, resolve_identity
from workbench.oidc_client import OidcClient
from workbench.schemas import UserResponse
from workbench.session_context import SessionContext, bind_session, unbind_session

logger = logging.getLogger(__name__)

OAUTH_STATE_KEY = "oauth_state"

auth_router = APIRouter()


@auth_router.get("/google")
async def google_login(
    request: Request, settings: Settings = Depends(get_settings)
):
    state = secrets.token_urlsafe(24)
    request.session[OAUTH_STATE_KEY] = state
    try:
        url = await OidcClient(settings).login_url(state)
    except IdentityProviderError as exc:
        logger.error("Cannot start login: %s", exc)
        raise HTTPException(
            status_code=503, detail="Identity provider is unavailable"
        ) from exc
    return RedirectResponse(url, status_code=302)


@auth_router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    db: DbClient = Depends(get_db_client),
):
    """
    Finish the provider handshake and bind the resolved user to the session.

    Any failure leaves the session signed out and sends the browser to the
    login failure page.
    """
    failure = RedirectResponse(settings.login_failure_url, status_code=302)
    expected_state = request.session.pop(OAUTH_STATE_KEY, None)

    if error:
        logger.info("Provider reported a failed login: %s", error)
        return failure
    if not code or not state or state != expected_state:
        logger.info("Rejected login callback with missing code or bad state")
        return failure

    try:
        provider = OidcClient(settings)
        tokens = await provider.exchange_code(code)
        userinfo = await provider.userinfo(tokens["access_token"])
    except IdentityProviderError as exc:
        logger.warning("Login failed talking to the identity provider: %s", exc)
        return failure

    assertion = IdentityAssertion.from_userinfo(userinfo)
    try:
        user = await run_in_threadpool(resolve_identity, db, assertion)
    except IdentityResolutionError:
        logger.exception("Login failed while resolving identity")
        return failure

    bind_session(request.session, user)
    logger.info("User %s signed in", user.user_id)
    return RedirectResponse(settings.login_success_url, status_code=302)


@auth_router.get("/current_user", response_model=Optional[UserResponse])
def current_user(ctx: SessionContext = Depends(get_session_context)):
    if not ctx.user:
        return None
    return UserResponse(**ctx.user.as_dict())


@auth_router.get("/logout")
def logout(request: Request, settings: Settings = Depends(get_settings)):
    unbind_session(request.session)
    return RedirectResponse(settings.frontend_url, status_code=302)
