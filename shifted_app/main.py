# shifted_app/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from shifted_app.core.config import settings, logger
from shifted_app.core.emailing import EmailDispatcher
from shifted_app.core.ratelimit import InMemoryRateLimiter
from shifted_app.db.base import init_db, dispose_engine

import shifted_app.api.waitlist as waitlist_api
import shifted_app.api.recovery_bridge as recovery_bridge_api
import shifted_app.api.auth_bridge as auth_bridge_api


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    app.state.rate_limiter = InMemoryRateLimiter(
        settings.waitlist_rate_limit,
        settings.waitlist_rate_window_seconds,
    )
    dispatcher = EmailDispatcher(
        timeout_sec=settings.email_task_timeout_seconds,
        maxsize=settings.email_queue_size,
    )
    dispatcher.start()
    app.state.email_dispatcher = dispatcher
    logger.info(f"[startup] env={settings.env} smtp={'on' if settings.smtp_configured else 'off'}")
    try:
        yield
    finally:
        await dispatcher.stop()
        await dispose_engine()


app = FastAPI(title="Shifted", lifespan=lifespan)

app.include_router(waitlist_api.router)
app.include_router(recovery_bridge_api.router)
app.include_router(auth_bridge_api.router)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins or [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/healthz")
async def healthz():
    return {"ok": True, "backend": settings.backend_configured, "smtp": settings.smtp_configured}
