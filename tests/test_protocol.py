from urllib.parse import unquote

from stranger_chat_client.protocol import (
    encode_topics,
    is_success_reply,
    make_id_form,
    make_send_form,
    make_start_params,
    parse_interests,
)


def test_encode_topics_quotes_each_interest() -> None:
    encoded = encode_topics(["music", "books"])
    assert encoded == "%5B%22music%22,%20%22books%22%5D"
    assert unquote(encoded) == '["music", "books"]'


def test_encode_topics_escapes_unicode_and_spaces() -> None:
    encoded = encode_topics(["café", "rock n roll"])
    assert " " not in encoded
    assert unquote(encoded) == '["café", "rock n roll"]'


def test_encode_empty_topics() -> None:
    assert encode_topics([]) == "%5B%5D"


def test_make_start_params_carries_identity_and_interests() -> None:
    params = make_start_params(
        random_id="1A2B3C",
        challenge_token="cc",
        interests=["music"],
        language="de",
    )
    assert params == {
        "caps": "recaptcha2,t3",
        "firstevents": "1",
        "spid": "",
        "randid": "1A2B3C",
        "cc": "cc",
        "topics": "%5B%22music%22%5D",
        "lang": "de",
    }


def test_form_builders() -> None:
    assert make_send_form("central1:abc", "hi") == {"msg": "hi", "id": "central1:abc"}
    assert make_id_form("central1:abc") == {"id": "central1:abc"}


def test_success_reply_requires_win_body() -> None:
    assert is_success_reply(200, "win")
    assert is_success_reply(200, "win\n")
    assert not is_success_reply(200, "fail")
    assert not is_success_reply(502, "win")


def test_parse_interests_splits_stored_string() -> None:
    assert parse_interests("music, books,  chess") == ["music", "books", "chess"]
    assert parse_interests("") == []
    assert parse_interests(None) == []
