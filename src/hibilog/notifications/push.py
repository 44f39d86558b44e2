"""Web Push delivery with per-device outcomes.

``pywebpush`` does the VAPID signing and payload encryption. Its call is
blocking, so each delivery runs in a worker thread and is bounded by a
timeout. ``fan_out`` sends to every device of a user concurrently and
reports one ``DeliveryResult`` per device; a failing or slow device never
affects the others.
"""

from __future__ import annotations

import asyncio
import enum
import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import structlog
from pywebpush import WebPushException, webpush

from hibilog.config import Settings
from hibilog.errors import ConfigurationError

logger = structlog.get_logger()

# Push services answer 404/410 for subscriptions that will never work again.
GONE_STATUS_CODES = frozenset({404, 410})

PUSH_TTL_SECONDS = 86400


class DeliveryOutcome(str, enum.Enum):
    SENT = "sent"
    GONE = "gone"
    FAILED = "failed"


@dataclass(frozen=True)
class PushTarget:
    endpoint: str
    p256dh: str
    auth: str

    def subscription_info(self) -> dict[str, Any]:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


@dataclass(frozen=True)
class PushMessage:
    title: str
    body: str
    icon: str | None = None

    def to_json(self) -> str:
        payload: dict[str, str] = {"title": self.title, "body": self.body}
        if self.icon:
            payload["icon"] = self.icon
        return json.dumps(payload, ensure_ascii=False)


@dataclass(frozen=True)
class DeliveryResult:
    endpoint: str
    outcome: DeliveryOutcome
    error: str | None = None


class PushTransport(Protocol):
    async def send(self, target: PushTarget, message: PushMessage) -> DeliveryResult: ...


def _status_code(exc: WebPushException) -> int | None:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)


class WebPushTransport:
    """Sends one notification to one subscription via ``pywebpush``."""

    def __init__(self, vapid_private_key: str, admin_email: str, timeout: float = 10.0) -> None:
        self.vapid_private_key = vapid_private_key
        self.vapid_claims = {"sub": f"mailto:{admin_email}"}
        self.timeout = timeout

    def _send_blocking(self, target: PushTarget, message: PushMessage) -> None:
        webpush(
            subscription_info=target.subscription_info(),
            data=message.to_json(),
            vapid_private_key=self.vapid_private_key,
            # pywebpush fills in "aud" per endpoint, so hand it a fresh dict
            vapid_claims=dict(self.vapid_claims),
            ttl=PUSH_TTL_SECONDS,
            timeout=self.timeout,
        )

    async def send(self, target: PushTarget, message: PushMessage) -> DeliveryResult:
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._send_blocking, target, message),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            return DeliveryResult(target.endpoint, DeliveryOutcome.FAILED, "timeout")
        except WebPushException as exc:
            if _status_code(exc) in GONE_STATUS_CODES:
                return DeliveryResult(target.endpoint, DeliveryOutcome.GONE, str(exc))
            return DeliveryResult(target.endpoint, DeliveryOutcome.FAILED, str(exc))
        return DeliveryResult(target.endpoint, DeliveryOutcome.SENT)


def build_transport(settings: Settings) -> WebPushTransport:
    """Create the transport from settings. Missing VAPID keys are fatal."""
    if not settings.vapid_public_key or not settings.vapid_private_key:
        raise ConfigurationError("VAPID key pair is not configured")
    return WebPushTransport(
        vapid_private_key=settings.vapid_private_key,
        admin_email=settings.admin_email,
        timeout=settings.push_timeout_seconds,
    )


async def _deliver_one(transport: PushTransport, target: PushTarget, message: PushMessage) -> DeliveryResult:
    try:
        return await transport.send(target, message)
    except Exception as exc:
        return DeliveryResult(target.endpoint, DeliveryOutcome.FAILED, repr(exc))


async def fan_out(
    transport: PushTransport,
    targets: Sequence[PushTarget],
    message: PushMessage,
) -> list[DeliveryResult]:
    """Deliver ``message`` to every target concurrently; one result per target."""
    results = await asyncio.gather(*(_deliver_one(transport, t, message) for t in targets))
    for result in results:
        if result.outcome is DeliveryOutcome.FAILED:
            logger.warning("push_delivery_failed", endpoint=result.endpoint, error=result.error)
    return list(results)
