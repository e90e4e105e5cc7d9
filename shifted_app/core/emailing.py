# shifted_app/core/emailing.py
from __future__ import annotations
import asyncio
import os
import smtplib
import ssl
import uuid
from contextlib import suppress
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, formatdate
from typing import Callable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from shifted_app.core.config import settings, logger
from shifted_app.core.validation import mask_email

_templates_dir = os.path.join(os.path.dirname(__file__), "..", "templates")
_jinja_env = Environment(
    loader=FileSystemLoader(_templates_dir),
    autoescape=select_autoescape(["html", "xml"]),
)


def render_email(template_name: str, **context) -> str:
    base = {
        "app_name": "Shifted",
        "support_email": settings.support_email,
    }
    base.update(context or {})
    return _jinja_env.get_template(template_name).render(**base)


@dataclass(frozen=True)
class WaitlistEmail:
    to_email: str
    already: bool


def build_waitlist_message(job: WaitlistEmail) -> EmailMessage:
    sender = settings.mail_from_email
    domain = sender.split("@")[-1] if "@" in sender else "shifteddating.com"

    msg = EmailMessage()
    msg["Subject"] = (
        "You’re already on the Shifted waitlist" if job.already else "You’re on the Shifted waitlist"
    )
    msg["From"] = formataddr((settings.mail_from_name, sender))
    msg["To"] = job.to_email
    msg["Message-ID"] = f"<{uuid.uuid4()}@{domain}>"
    msg["Date"] = formatdate(usegmt=True)
    msg.set_content("You’re already on our list." if job.already else "You’re on the list!")
    msg.add_alternative(render_email("emails/waitlist.html", already=job.already), subtype="html")
    return msg


def send_waitlist_email(job: WaitlistEmail) -> bool:
    """
    Blocking SMTP send (STARTTLS). Returns False when SMTP is not configured.
    Raises on SMTP/network failure; the dispatcher logs and drops it.
    """
    if settings.email_debug:
        logger.info(
            "[waitlist-email] env presence "
            f"host={bool(settings.smtp_host)} user={bool(settings.smtp_user)} "
            f"pass={bool(settings.smtp_pass)} from={bool(settings.mail_from_email)}"
        )
    if not settings.smtp_configured:
        logger.warning("[waitlist-email] SMTP not configured; skipping confirmation email")
        return False

    if settings.email_debug:
        logger.info(
            f"[waitlist-email] attempting send to={mask_email(job.to_email)} "
            f"host={settings.smtp_host} port={settings.smtp_port} already={job.already}"
        )

    msg = build_waitlist_message(job)
    context = ssl.create_default_context()
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds) as server:
        server.starttls(context=context)
        server.login(settings.smtp_user, settings.smtp_pass)
        server.send_message(msg)

    logger.info(f"[waitlist-email] sent to={mask_email(job.to_email)} already={job.already}")
    return True


class EmailDispatcher:
    """
    Bounded queue drained by a single background worker. Sends never block
    or fail the request that queued them; outcomes only show up in logs.
    """

    def __init__(
        self,
        send: Optional[Callable[[WaitlistEmail], object]] = None,
        timeout_sec: float = 20.0,
        maxsize: int = 100,
    ):
        self._send = send or send_waitlist_email
        self.timeout_sec = timeout_sec
        self._queue: asyncio.Queue[WaitlistEmail] = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._worker())

    async def stop(self, drain_timeout_sec: float = 5.0) -> None:
        if self._task is None:
            return
        if self.running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=drain_timeout_sec)
            except asyncio.TimeoutError:
                pass
        pending = self._queue.qsize()
        if pending:
            logger.warning(f"[waitlist-email] shutting down; dropping {pending} queued email(s)")
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def submit(self, job: WaitlistEmail) -> bool:
        try:
            self._queue.put_nowait(job)
            return True
        except asyncio.QueueFull:
            logger.warning(f"[waitlist-email] queue full; dropping email to={mask_email(job.to_email)}")
            return False

    async def join(self) -> None:
        await self._queue.join()

    async def _deliver(self, job: WaitlistEmail) -> None:
        try:
            await asyncio.wait_for(asyncio.to_thread(self._send, job), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            logger.error(
                f"[waitlist-email] FAILED to={mask_email(job.to_email)} "
                f"timed out after {self.timeout_sec}s"
            )
        except (smtplib.SMTPException, OSError) as ex:
            logger.error(
                f"[waitlist-email] FAILED to={mask_email(job.to_email)} "
                f"{type(ex).__name__}: {ex}"
            )
        except Exception:
            logger.exception(f"[waitlist-email] FAILED to={mask_email(job.to_email)}")

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._deliver(job)
            finally:
                self._queue.task_done()
