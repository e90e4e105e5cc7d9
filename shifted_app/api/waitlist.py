# shifted_app/api/waitlist.py
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shifted_app.api.deps import get_email_dispatcher, get_rate_limiter
from shifted_app.core.config import settings, logger
from shifted_app.core.emailing import EmailDispatcher, WaitlistEmail
from shifted_app.core.ratelimit import RateLimiter, client_ip
from shifted_app.core.validation import clean_str, is_valid_email, mask_email, normalize_email
from shifted_app.db.base import BackendNotConfigured, async_session
from shifted_app.db.models import WaitlistSignup
from shifted_app.schemas.waitlist import LONG_TEXT_MAX_LEN, WaitlistIn, WaitlistOut

router = APIRouter(tags=["waitlist"])

ERR_INVALID_EMAIL = "Enter a valid email."
ERR_RATE_LIMITED = "Too many requests. Please try again in a few minutes."
ERR_NOT_CONFIGURED = "Waitlist is not configured."
ERR_INSERT_FAILED = "Could not join the waitlist. Please try again."

UNIQUE_VIOLATION = "23505"


def _fail(code: int, error: str, **extra) -> JSONResponse:
    body = WaitlistOut(ok=False, error=error, **extra).model_dump(exclude_none=True)
    return JSONResponse(status_code=code, content=body)


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == UNIQUE_VIOLATION
    # sqlite carries no SQLSTATE, only "UNIQUE constraint failed: ..."
    return "unique constraint" in str(orig).lower()


async def _read_payload(request: Request) -> WaitlistIn:
    try:
        body = await request.json()
    except ValueError:
        body = {}
    try:
        return WaitlistIn.model_validate(body if isinstance(body, dict) else {})
    except ValidationError:
        return WaitlistIn()


def _queue_email(dispatcher: EmailDispatcher | None, email: str, already: bool) -> None:
    if dispatcher is None:
        logger.warning("[waitlist] email dispatcher not running; confirmation skipped")
        return
    dispatcher.submit(WaitlistEmail(to_email=email, already=already))


@router.post("/waitlist", response_model=WaitlistOut, response_model_exclude_none=True)
@router.post("/api/waitlist", response_model=WaitlistOut, response_model_exclude_none=True, include_in_schema=False)
async def join_waitlist(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
    dispatcher: EmailDispatcher | None = Depends(get_email_dispatcher),
):
    if not settings.backend_configured:
        logger.error("[waitlist] DATABASE_URL not set")
        return _fail(status.HTTP_500_INTERNAL_SERVER_ERROR, ERR_NOT_CONFIGURED)

    ip = client_ip(request)
    decision = limiter.allow(ip)
    if not decision.allowed:
        resp = _fail(
            status.HTTP_429_TOO_MANY_REQUESTS,
            ERR_RATE_LIMITED,
            retry_after=decision.retry_after_seconds,
        )
        resp.headers["Retry-After"] = str(decision.retry_after_seconds)
        return resp

    payload = await _read_payload(request)

    # bots fill every field; pretend it worked
    if payload.company:
        logger.info(f"[waitlist] honeypot tripped ip={ip}")
        return WaitlistOut(ok=True)

    email = normalize_email(payload.email)
    if not is_valid_email(email):
        return _fail(status.HTTP_400_BAD_REQUEST, ERR_INVALID_EMAIL)

    row = WaitlistSignup(
        email=email,
        city=payload.city,
        is_shift_worker=payload.is_shift_worker,
        source=payload.source,
        referrer=payload.referrer,
        utm_source=payload.utm_source,
        utm_medium=payload.utm_medium,
        utm_campaign=payload.utm_campaign,
        utm_term=payload.utm_term,
        utm_content=payload.utm_content,
        ip=clean_str(ip, 64),
        user_agent=clean_str(request.headers.get("user-agent"), LONG_TEXT_MAX_LEN),
    )

    try:
        async with async_session() as s:
            s.add(row)
            try:
                await s.commit()
            except IntegrityError as ex:
                await s.rollback()
                if not _is_unique_violation(ex):
                    raise
                logger.info(f"[waitlist] already subscribed email={mask_email(email)}")
                _queue_email(dispatcher, email, already=True)
                return WaitlistOut(ok=True, already=True)
    except BackendNotConfigured:
        logger.error("[waitlist] DATABASE_URL not set")
        return _fail(status.HTTP_500_INTERNAL_SERVER_ERROR, ERR_NOT_CONFIGURED)
    except SQLAlchemyError:
        logger.exception(f"[waitlist] insert failed email={mask_email(email)}")
        return _fail(status.HTTP_500_INTERNAL_SERVER_ERROR, ERR_INSERT_FAILED)

    logger.info(f"[waitlist] joined email={mask_email(email)} source={payload.source}")
    _queue_email(dispatcher, email, already=False)
    return WaitlistOut(ok=True)
