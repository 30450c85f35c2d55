"""JSON-over-HTTP contract verification client."""

import json
import socket
from typing import Any, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

import structlog

from ..errors import ConfigurationError
from .base import VerificationOutcome, VerificationResponse, Verifier

logger = structlog.get_logger(__name__)

FAILURE_MARKERS = ("fail", "error", "unable to verify", "invalid")


def classify_message(message: str, default: VerificationOutcome) -> VerificationOutcome:
    """Map explorer response text to an outcome."""
    text = message.lower()
    if "already verified" in text:
        return VerificationOutcome.ALREADY_VERIFIED
    if "rate limit" in text or "too many requests" in text:
        return VerificationOutcome.RATE_LIMITED
    return default


def classify_success_body(body: str, message: str) -> VerificationOutcome:
    """Classify a 200 response. Explorers report failures in the body.

    A status of "0" or failure text is fatal unless the message says the
    contract is already verified or the request was rate limited.
    """
    status = None
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        data = None
    if isinstance(data, dict) and data.get("status") is not None:
        status = str(data["status"])

    text = message.lower()
    failed = status == "0" or any(marker in text for marker in FAILURE_MARKERS)
    return classify_message(
        message, VerificationOutcome.FATAL if failed else VerificationOutcome.SUCCESS
    )


class HttpVerifier(Verifier):
    """Posts ``{address, constructorArguments}`` to a verification endpoint."""

    def __init__(self, url: str, api_key: Optional[str] = None, timeout_seconds: int = 30):
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise ConfigurationError(f"Invalid verification URL: {url}",
                                     context={"url": url})
        self.url = url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.logger = logger.bind(verifier_url=url)

    def verify(self, address: str, args: Sequence[Any]) -> VerificationResponse:
        payload: dict[str, Any] = {
            "address": address,
            "constructorArguments": list(args),
        }
        if self.api_key:
            payload["apiKey"] = self.api_key

        data = json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "Content-Length": str(len(data)),
            "User-Agent": "atlas-launch/0.1",
        }
        req = Request(self.url, data=data, headers=headers, method="POST")

        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                body = response.read().decode("utf-8")
                message = self._message_from(body)
                outcome = classify_success_body(body, message)
                self.logger.debug("Verification response", address=address,
                                  response_code=response.getcode(), outcome=outcome.value)
                return VerificationResponse(outcome=outcome, message=message)

        except HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            message = self._message_from(body) or f"HTTP {e.code}: {e.reason}"

            if e.code == 429 or e.code >= 500:
                outcome = VerificationOutcome.RATE_LIMITED
            else:
                outcome = classify_message(message, VerificationOutcome.FATAL)
            self.logger.warning("Verification HTTP error", address=address,
                                error_code=e.code, outcome=outcome.value)
            return VerificationResponse(outcome=outcome, message=message)

        except (OSError, URLError, socket.timeout) as e:
            # Network errors are transient
            self.logger.warning("Verification network error", address=address, error=str(e))
            return VerificationResponse(outcome=VerificationOutcome.RATE_LIMITED,
                                        message=f"Network error: {e}")

    @staticmethod
    def _message_from(body: str) -> str:
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, ValueError):
            return body.strip()[:500]
        if isinstance(data, dict):
            return str(data.get("result") or data.get("message") or data)
        return str(data)
