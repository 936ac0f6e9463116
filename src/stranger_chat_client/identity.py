from __future__ import annotations

import random
import string

from loguru import logger

from .transport import Transport

_BASE36_DIGITS = string.digits + string.ascii_uppercase

# Random ids are drawn from [1e9, 2e9), which always encodes to 6 base-36 digits.
_RANDOM_ID_LOW = 1_000_000_000
_RANDOM_ID_HIGH = 2_000_000_000


def to_base36(value: int) -> str:
    """Encode a non-negative integer in uppercase base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def make_random_id(rng: random.Random | None = None) -> str:
    """Generate a fresh local client id."""
    source = rng or random
    return to_base36(source.randrange(_RANDOM_ID_LOW, _RANDOM_ID_HIGH))


class SessionIdentity:
    """Ephemeral identifiers for one client: local random id and challenge token."""

    def __init__(self, random_id: str | None = None) -> None:
        self._random_id = random_id or make_random_id()
        self._challenge_token = ""

    @property
    def random_id(self) -> str:
        return self._random_id

    @property
    def challenge_token(self) -> str:
        return self._challenge_token

    async def ensure_challenge_token(self, transport: Transport) -> str:
        """Return the cached challenge token, fetching it first when empty.

        Raises:
            ChallengeTokenError: If the token cannot be fetched.
        """
        if not self._challenge_token:
            self._challenge_token = await transport.fetch_challenge_token()
            logger.debug("Fetched challenge token for {}", self._random_id)
        return self._challenge_token

    def reset(self) -> None:
        """Forget the token and draw a new random id."""
        self._random_id = make_random_id()
        self._challenge_token = ""
