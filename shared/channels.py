"""
Push delivery vocabulary and a mock multicast provider.

A push provider takes one notification and a list of device-registration
tokens and reports an outcome per token. The real provider lives in
`shared.firebase`; the mock here logs sends and records them for test
assertions, the same way the real one is driven.

Design decisions:
- One multicast call per notification, N per-token results back
- Provider error codes are plain strings so the classification logic does
  not depend on any SDK's exception classes
- Per-token failures are data in the result, not exceptions; only a failure
  of the call as a whole raises
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4

logger = logging.getLogger("push")


# Provider error codes. The first two mean the token will never work again.
INVALID_REGISTRATION_TOKEN = "messaging/invalid-registration-token"
REGISTRATION_TOKEN_NOT_REGISTERED = "messaging/registration-token-not-registered"
INTERNAL_ERROR = "messaging/internal-error"
SERVER_UNAVAILABLE = "messaging/server-unavailable"
MESSAGE_RATE_EXCEEDED = "messaging/message-rate-exceeded"
INVALID_ARGUMENT = "messaging/invalid-argument"


@dataclass
class PushMessage:
    """
    What the device shows.

    Title and body are the whole user-visible payload. `data` carries
    auxiliary keys for client-side deep-linking.
    """
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)
    link: Optional[str] = None
    icon: Optional[str] = None


@dataclass
class SendResponse:
    """Outcome of delivering to one token."""
    token: str
    success: bool
    message_id: Optional[str] = None
    error_code: Optional[str] = None
    error: Optional[str] = None

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        if self.success:
            return f"{status} {self.token[:12]}"
        return f"{status} {self.token[:12]}: {self.error_code}"


@dataclass
class MulticastResult:
    """Per-token outcomes of one multicast send, in token order."""
    responses: list[SendResponse]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.responses if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.responses if not r.success)

    def failed(self) -> list[SendResponse]:
        """Responses for tokens that did not receive the message."""
        return [r for r in self.responses if not r.success]


class PushChannelError(Exception):
    """The multicast call itself failed; no per-token results exist."""


@dataclass
class SentBatch:
    """One recorded multicast call."""
    tokens: list[str]
    message: PushMessage
    result: MulticastResult


class PushChannel:
    """
    Mock multicast push provider.

    Logs each send and records it for test assertions. Individual tokens
    can be set up to fail with a given provider error code, and the whole
    call can be set up to raise, to exercise error handling.
    """

    def __init__(
        self,
        token_errors: Optional[dict[str, str]] = None,
        fail_with: Optional[Exception] = None,
    ):
        """
        Initialize the mock provider.

        Args:
            token_errors: Token -> provider error code for tokens that fail
            fail_with: Exception to raise from every send (provider outage)
        """
        self.token_errors: dict[str, str] = dict(token_errors or {})
        self.fail_with = fail_with
        self.sent_batches: list[SentBatch] = []

    def fail_token(self, token: str, error_code: str) -> None:
        """Make future sends to `token` fail with `error_code`."""
        self.token_errors[token] = error_code

    def send_multicast(self, tokens: list[str], message: PushMessage) -> MulticastResult:
        """
        Send one notification to every token in a single call.

        Returns:
            MulticastResult with one SendResponse per token, in order

        Raises:
            PushChannelError (or the configured exception) if the call fails
        """
        if self.fail_with is not None:
            logger.error(f"[PUSH FAILED] {len(tokens)} token(s) | Error: {self.fail_with}")
            raise self.fail_with

        responses = []
        for token in tokens:
            error_code = self.token_errors.get(token)
            if error_code:
                responses.append(SendResponse(
                    token=token,
                    success=False,
                    error_code=error_code,
                    error=f"Simulated delivery failure ({error_code})",
                ))
            else:
                responses.append(SendResponse(
                    token=token,
                    success=True,
                    message_id=f"projects/mock/messages/{uuid4().hex[:16]}",
                ))

        result = MulticastResult(responses=responses)
        self.sent_batches.append(SentBatch(tokens=list(tokens), message=message, result=result))

        logger.info(
            f"[PUSH] {message.title} | {result.success_count}/{len(tokens)} delivered"
        )
        logger.debug(f"[PUSH BODY] {message.body}")
        return result

    def get_sent_count(self) -> int:
        """Number of multicast calls made (for testing)."""
        return len(self.sent_batches)

    def last_batch(self) -> Optional[SentBatch]:
        return self.sent_batches[-1] if self.sent_batches else None

    def clear_history(self):
        """Clear sent history (useful between tests)."""
        self.sent_batches.clear()
