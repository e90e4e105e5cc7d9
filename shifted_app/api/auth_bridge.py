# shifted_app/api/auth_bridge.py
import os
from typing import Optional

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError

from shifted_app.core.bridge import (
    BridgePayload,
    classify,
    handoff_params,
    merge_params,
    scheme_link,
    universal_link,
)
from shifted_app.core.config import settings, logger
from shifted_app.core.recovery_store import create_bridge
from shifted_app.db.base import BackendNotConfigured
from shifted_app.schemas.bridge import BridgeOutcome, BridgeResolveIn

router = APIRouter(tags=["auth-bridge"])

templates = Jinja2Templates(directory=os.path.join(os.path.dirname(__file__), "..", "templates"))

MSG_OPENING = "Opening Shifted…"
MSG_MANUAL = "This page is normally opened from your confirmation email link."
MSG_HANDOFF_FAILED = "We couldn't hand your sign-in to the app. Open Shifted and request a new link."

RESOLVE_PATH = "/auth/callback/resolve"


class HandoffFailed(Exception):
    pass


def _next_step(payload: BridgePayload) -> str:
    return payload.params.get("next") or settings.bridge_next_default


def _needs_exchange(payload: BridgePayload) -> bool:
    return payload.kind == "tokens" and settings.bridge_token_strategy == "reference"


async def build_outcome(payload: BridgePayload) -> BridgeOutcome:
    """Decide what the callback page does with the provider's payload."""
    if payload.kind == "error":
        return BridgeOutcome(
            action="error",
            message=payload.error or "",
            fallback_url=scheme_link(settings.app_scheme, {}),
        )

    if payload.kind == "none":
        return BridgeOutcome(
            action="manual",
            message=MSG_MANUAL,
            fallback_url=scheme_link(settings.app_scheme, {"next": _next_step(payload)}),
        )

    rid: Optional[str] = None
    if _needs_exchange(payload):
        try:
            rid = await create_bridge(payload.access_token or "", payload.refresh_token or "")
        except (BackendNotConfigured, SQLAlchemyError) as ex:
            raise HandoffFailed(str(ex)) from ex

    params = handoff_params(payload, _next_step(payload), rid=rid)
    return BridgeOutcome(
        action="open_app",
        message=MSG_OPENING,
        redirect_url=universal_link(settings.site_url, params),
        fallback_url=scheme_link(settings.app_scheme, params),
    )


@router.get("/auth/callback", response_class=HTMLResponse)
async def auth_callback_page(request: Request):
    payload = classify(merge_params(request.url.query))

    # token exchange has a side effect, so it only happens on the POST below
    planned: Optional[BridgeOutcome] = None
    if not _needs_exchange(payload):
        planned = await build_outcome(payload)

    return templates.TemplateResponse(
        request,
        "auth_callback.html",
        {
            "planned": planned.model_dump() if planned else None,
            "message": planned.message if planned else MSG_OPENING,
            "fallback_url": planned.fallback_url
            if planned
            else scheme_link(settings.app_scheme, {"next": _next_step(payload)}),
            "is_error": bool(planned and planned.action == "error"),
            "resolve_url": RESOLVE_PATH,
        },
    )


@router.post(RESOLVE_PATH, response_model=BridgeOutcome, response_model_exclude_none=True)
async def resolve_callback(body: BridgeResolveIn):
    payload = classify(merge_params(body.query, body.fragment))
    try:
        outcome = await build_outcome(payload)
    except HandoffFailed as ex:
        logger.error(f"[auth-bridge] token exchange failed: {ex}")
        failed = BridgeOutcome(
            action="error",
            message=MSG_HANDOFF_FAILED,
            fallback_url=scheme_link(settings.app_scheme, {"next": _next_step(payload)}),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=failed.model_dump(exclude_none=True),
        )

    logger.info(f"[auth-bridge] payload={payload.kind} action={outcome.action}")
    return outcome


@router.get("/open", response_class=HTMLResponse)
async def open_app_page(request: Request):
    # only reached when the OS did not route the universal link into the app
    params = dict(request.query_params)
    return templates.TemplateResponse(
        request,
        "open.html",
        {"fallback_url": scheme_link(settings.app_scheme, params)},
    )


@router.get("/.well-known/apple-app-site-association")
async def apple_app_site_association():
    if not settings.aasa_app_ids:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not configured")
    doc = {
        "applinks": {
            "apps": [],
            "details": [{"appID": app_id, "paths": ["/open", "/open/*"]} for app_id in settings.aasa_app_ids],
        }
    }
    return JSONResponse(content=doc, headers={"Cache-Control": "public, max-age=300"})
