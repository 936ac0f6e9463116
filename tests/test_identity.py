import asyncio
import random
import re

import pytest

from stranger_chat_client.errors import ChallengeTokenError
from stranger_chat_client.identity import SessionIdentity, make_random_id, to_base36


class TokenSource:
    def __init__(self, *tokens: object) -> None:
        self._tokens = list(tokens)
        self.calls = 0

    async def fetch_challenge_token(self) -> str:
        self.calls += 1
        token = self._tokens.pop(0)
        if isinstance(token, Exception):
            raise token
        return str(token)


def test_to_base36_matches_int_parsing() -> None:
    for value in [0, 1, 35, 36, 1_000_000_000, 1_999_999_999]:
        assert int(to_base36(value), 36) == value
    assert to_base36(35) == "Z"


def test_random_ids_are_six_uppercase_base36_chars() -> None:
    rng = random.Random(7)
    for _ in range(100):
        assert re.fullmatch(r"[0-9A-Z]{6}", make_random_id(rng))


def test_negative_values_are_rejected() -> None:
    with pytest.raises(ValueError):
        to_base36(-1)


def test_challenge_token_is_cached() -> None:
    async def _run() -> None:
        source = TokenSource("abc")
        identity = SessionIdentity("ID0001")
        assert await identity.ensure_challenge_token(source) == "abc"  # type: ignore[arg-type]
        assert await identity.ensure_challenge_token(source) == "abc"  # type: ignore[arg-type]
        assert source.calls == 1

    asyncio.run(_run())


def test_failed_fetch_leaves_token_empty_for_retry() -> None:
    async def _run() -> None:
        source = TokenSource(ChallengeTokenError("nope"), "second")
        identity = SessionIdentity()
        with pytest.raises(ChallengeTokenError):
            await identity.ensure_challenge_token(source)  # type: ignore[arg-type]
        assert identity.challenge_token == ""
        assert await identity.ensure_challenge_token(source) == "second"  # type: ignore[arg-type]

    asyncio.run(_run())


def test_reset_forgets_token() -> None:
    async def _run() -> None:
        source = TokenSource("one", "two")
        identity = SessionIdentity()
        await identity.ensure_challenge_token(source)  # type: ignore[arg-type]
        identity.reset()
        assert identity.challenge_token == ""
        assert await identity.ensure_challenge_token(source) == "two"  # type: ignore[arg-type]

    asyncio.run(_run())
