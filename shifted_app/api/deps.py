from fastapi import Request

from shifted_app.core.config import settings
from shifted_app.core.emailing import EmailDispatcher
from shifted_app.core.ratelimit import InMemoryRateLimiter, RateLimiter


def get_rate_limiter(request: Request) -> RateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        # app started without lifespan (plain mounting); build one lazily
        limiter = InMemoryRateLimiter(settings.waitlist_rate_limit, settings.waitlist_rate_window_seconds)
        request.app.state.rate_limiter = limiter
    return limiter


def get_email_dispatcher(request: Request) -> EmailDispatcher | None:
    return getattr(request.app.state, "email_dispatcher", None)
