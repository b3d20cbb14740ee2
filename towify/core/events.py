"""Credential change channel.

The auth service publishes sign-in, sign-out and token refresh events here.
The channel admits one subscriber at a time: the session resolver. A second
subscription while one is active is a wiring error, not a second listener.
"""

import inspect
from typing import Awaitable, Callable, Optional, Union

from towify.core.exceptions import AppError
from towify.schemas.auth import AuthEvent, Credential
from towify.utils.logging import get_logger

LOGGER = get_logger(__name__)

CredentialCallback = Callable[[AuthEvent, Optional[Credential]], Union[None, Awaitable[None]]]


class Subscription:
    """Handle for an active channel subscription."""

    def __init__(self, channel: "CredentialChannel"):
        self._channel = channel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Release the subscription. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._channel._release(self)


class CredentialChannel:
    """Single-subscriber push channel for credential changes."""

    def __init__(self):
        self._callback: Optional[CredentialCallback] = None
        self._subscription: Optional[Subscription] = None

    @property
    def has_subscriber(self) -> bool:
        return self._subscription is not None

    def subscribe(self, callback: CredentialCallback) -> Subscription:
        """Register the subscriber.

        Raises:
            AppError: If a subscription is already active
        """
        if self._subscription is not None:
            raise AppError("Credential channel already has an active subscriber")
        self._callback = callback
        self._subscription = Subscription(self)
        LOGGER.debug("Credential channel subscribed")
        return self._subscription

    def _release(self, subscription: Subscription) -> None:
        if subscription is self._subscription:
            self._subscription = None
            self._callback = None
            LOGGER.debug("Credential channel released")

    async def publish(self, event: AuthEvent, credential: Optional[Credential]) -> None:
        """Deliver an event to the subscriber, if any."""
        callback = self._callback
        if callback is None:
            LOGGER.debug(f"No subscriber for {event.value}")
            return
        result = callback(event, credential)
        if inspect.isawaitable(result):
            await result
