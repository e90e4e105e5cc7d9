from typing import Optional

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from shifted_app.core.config import settings, logger
from shifted_app.core.recovery_store import (
    BridgeNotFound,
    BridgeUnavailable,
    consume_bridge,
    create_bridge,
)
from shifted_app.db.base import BackendNotConfigured
from shifted_app.schemas.bridge import RecoveryBridgeIn, RecoveryBridgeOut, RecoveryTokensOut

router = APIRouter(tags=["recovery-bridge"])


def _error(code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=code, content={"error": error})


@router.post("/recovery-bridge", response_model=RecoveryBridgeOut)
@router.post("/api/recovery-bridge", response_model=RecoveryBridgeOut, include_in_schema=False)
async def store_tokens(request: Request):
    try:
        body = await request.json()
        payload = RecoveryBridgeIn.model_validate(body if isinstance(body, dict) else {})
    except (ValueError, ValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, "missing_tokens")

    access_token = (payload.access_token or "").strip()
    refresh_token = (payload.refresh_token or "").strip()
    if not access_token or not refresh_token:
        return _error(status.HTTP_400_BAD_REQUEST, "missing_tokens")

    if not settings.backend_configured:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "missing_backend_config")

    try:
        rid = await create_bridge(access_token, refresh_token)
    except BackendNotConfigured:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "missing_backend_config")
    except SQLAlchemyError:
        logger.exception("[recovery-bridge] insert failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "insert_failed")
    return RecoveryBridgeOut(rid=rid)


@router.get("/recovery-bridge", response_model=RecoveryTokensOut)
@router.get("/api/recovery-bridge", response_model=RecoveryTokensOut, include_in_schema=False)
async def fetch_tokens(rid: Optional[str] = Query(None)):
    rid = (rid or "").strip()
    if not rid:
        return _error(status.HTTP_400_BAD_REQUEST, "missing_rid")

    if not settings.backend_configured:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "missing_backend_config")

    try:
        access_token, refresh_token = await consume_bridge(rid)
    except BridgeNotFound:
        return _error(status.HTTP_404_NOT_FOUND, "not_found")
    except BridgeUnavailable as ex:
        return _error(status.HTTP_410_GONE, ex.reason)
    except SQLAlchemyError:
        logger.exception(f"[recovery-bridge] lookup failed rid={rid}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "lookup_failed")

    return RecoveryTokensOut(access_token=access_token, refresh_token=refresh_token)
