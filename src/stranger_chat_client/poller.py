from __future__ import annotations

from collections.abc import Awaitable, Callable

from loguru import logger

from .codec import decode
from .errors import StrangerChatError
from .models import PhaseTransition, ProtocolEvent, TransportError
from .state import ProtocolStateMachine
from .transport import Transport

Publisher = Callable[[PhaseTransition], Awaitable[None]]


class PollLoop:
    """Long-poll loop for one session handle.

    Requests are re-issued as soon as the previous one resolves; the server's
    hold time paces the loop. The loop stops once the state machine no longer
    carries the handle it was started with.
    """

    def __init__(
        self,
        transport: Transport,
        machine: ProtocolStateMachine,
        publish: Publisher,
    ) -> None:
        self._transport = transport
        self._machine = machine
        self._publish = publish
        self.requests_issued = 0

    def _is_current(self, client_id: str) -> bool:
        return self._machine.client_id == client_id

    async def run(self, client_id: str) -> None:
        """Poll until the session handle is cleared."""
        logger.info("Polling started for session {}", client_id)
        while self._is_current(client_id):
            self.requests_issued += 1
            try:
                body = await self._transport.poll(client_id)
            except StrangerChatError as exc:
                if not self._is_current(client_id):
                    break
                logger.warning("Poll request for session {} failed: {}", client_id, exc)
                await self._apply(client_id, TransportError(detail=str(exc)))
                break

            if not self._is_current(client_id):
                logger.debug("Discarding poll response for ended session {}", client_id)
                break

            for event in decode(body):
                if not await self._apply(client_id, event):
                    break
        logger.info(
            "Polling stopped for session {} after {} requests",
            client_id,
            self.requests_issued,
        )

    async def _apply(self, client_id: str, event: ProtocolEvent) -> bool:
        # Events must not touch the state once the session has been ended locally.
        if not self._is_current(client_id):
            return False
        transition = self._machine.apply(event)
        if transition is not None:
            await self._publish(transition)
        return True
