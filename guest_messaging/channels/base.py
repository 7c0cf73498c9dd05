"""
Channel sender interface and shared HTTP plumbing for provider APIs.

Senders never retry: a transient failure (timeout, 429, 5xx) is raised as
TransientChannelError and recorded by the caller, same as a permanent one.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

import requests
import structlog

from guest_messaging.config import CHANNEL_TIMEOUT_SECONDS
from guest_messaging.errors import PermanentChannelError, TransientChannelError
from guest_messaging.metrics import channel_latency, channel_requests

logger = structlog.get_logger(__name__)


class Channel(str, Enum):
    INAPP = "inapp"
    WHATSAPP = "whatsapp"
    SMS = "sms"
    EMAIL = "email"
    OTA = "ota"


@dataclass(frozen=True)
class SendResult:
    """
    Outcome of an accepted send.

    delivered is True only when acceptance already implies receipt, which
    is the case for the in-app channel.
    """

    provider_message_id: Optional[str] = None
    delivered: bool = False


class ChannelSender(Protocol):
    channel: str

    def send(self, recipient: str, content: str, subject: Optional[str] = None) -> SendResult:
        ...


def is_transient(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Classify a failed provider call.

    Args:
        res (Optional[requests.Response]): Response object if available.
        err (Optional[Exception]): Exception raised by the request, if any.

    Returns:
        bool: True for rate limits, timeouts, connection errors and 5xx.
    """
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    if res is not None and res.status_code == 429:
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    return False


def provider_request(
    channel: str,
    method: str,
    url: str,
    timeout: float = CHANNEL_TIMEOUT_SECONDS,
    expected: Any = dict,
    **kwargs: Any,
) -> Any:
    """
    Call a provider API once and return its decoded JSON body.

    ``expected`` is the type (or tuple of types) the body must decode to.

    Raises:
        TransientChannelError: Timeout, connection error, 429 or 5xx
        PermanentChannelError: Any other non-2xx response or undecodable body,
            or a body of an unexpected shape
    """
    start_time = time.time()
    try:
        res = requests.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as err:
        channel_requests.labels(channel=channel, status_code="error").inc()
        logger.warning("channel_request_error", channel=channel, error=str(err))
        if is_transient(None, err):
            raise TransientChannelError(channel, str(err)) from err
        raise PermanentChannelError(channel, str(err)) from err
    finally:
        channel_latency.labels(channel=channel).observe(time.time() - start_time)

    channel_requests.labels(channel=channel, status_code=str(res.status_code)).inc()

    if not res.ok:
        detail = res.text[:500]
        logger.warning(
            "channel_request_rejected",
            channel=channel,
            status_code=res.status_code,
            detail=detail,
        )
        error_cls = TransientChannelError if is_transient(res, None) else PermanentChannelError
        raise error_cls(channel, detail or res.reason, status_code=res.status_code)

    try:
        body = res.json()
    except ValueError as e:
        raise PermanentChannelError(channel, "provider returned a non-JSON body") from e
    if not isinstance(body, expected):
        raise PermanentChannelError(
            channel, f"unexpected provider response: {type(body).__name__}"
        )
    return body
