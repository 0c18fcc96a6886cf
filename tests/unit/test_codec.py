from __future__ import annotations

import base64
import json
import zlib

import pytest

from cereal.codec import (
    TokenDecodeError,
    TokenEncodeError,
    decode_token,
    deflate,
    dump_payload,
    encode_entries,
    inflate,
    parse_payload,
    to_text,
)
from cereal.config import CodecSettings


def _token_for(payload: bytes) -> str:
    return to_text(deflate(payload))


def test_token_is_raw_deflate_of_compact_json():
    token = encode_entries([("one", 1), (2, [True, None]), ("nested", {"a": 1.5})])

    compressed = base64.b64decode(token, validate=True)
    # Raw stream: decompressing with wbits=-15 works, a zlib header would not
    payload = zlib.decompress(compressed, -15)
    assert payload == b'{"one":1,"2":[true,null],"nested":{"a":1.5}}'


def test_dump_payload_keeps_insertion_order_and_unicode():
    payload = dump_payload([("z", 1), ("a", "é")])
    assert payload.decode("utf-8") == '{"z":1,"a":"é"}'


@pytest.mark.parametrize(
    "value",
    [float("nan"), float("inf"), {1, 2}, object(), b"bytes", {"a": float("-inf")}, (1, 2), {1: "a"}],
)
def test_unrepresentable_values_raise_encode_error(value):
    with pytest.raises(TokenEncodeError):
        encode_entries([("k", value)])


def test_encode_error_is_chained_and_names_the_key():
    with pytest.raises(TokenEncodeError) as info:
        dump_payload([("bad", object())])
    assert "'bad'" in str(info.value)
    assert info.value.__cause__ is not None


def test_compression_level_changes_nothing_semantically():
    entries = [("text", "abc" * 50)]
    fast = encode_entries(entries, CodecSettings(compression_level=0))
    best = encode_entries(entries, CodecSettings(compression_level=9))
    assert len(best) < len(fast)
    assert decode_token(fast) == decode_token(best) == {"text": "abc" * 50}


def test_decode_normalizes_top_level_keys_only():
    token = _token_for(b'{"1":"a","01":"b","x":{"2":"c"}}')
    assert decode_token(token) == {1: "a", "01": "b", "x": {"2": "c"}}


def test_decode_accepts_top_level_array():
    token = _token_for(json.dumps(["a", "b"]).encode())
    assert decode_token(token) == {0: "a", 1: "b"}


def test_decode_accepts_bytes_token():
    token = encode_entries([("k", "v")])
    assert decode_token(token.encode("ascii")) == {"k": "v"}


@pytest.mark.parametrize("payload", [b'"text"', b"5", b"null", b"true"])
def test_decode_rejects_non_container_payloads(payload):
    with pytest.raises(TokenDecodeError):
        decode_token(_token_for(payload))


def test_decode_rejects_non_finite_constants():
    with pytest.raises(TokenDecodeError):
        decode_token(_token_for(b'{"a":NaN}'))


def test_decode_rejects_invalid_json():
    with pytest.raises(TokenDecodeError):
        decode_token(_token_for(b"{not json"))


@pytest.mark.parametrize("token", ["", "not a valid token!!", "abc", "é"])
def test_decode_rejects_bad_text(token):
    with pytest.raises(TokenDecodeError):
        decode_token(token)


def test_decode_rejects_zlib_wrapped_stream():
    token = base64.b64encode(zlib.compress(b'{"a":1}')).decode("ascii")
    with pytest.raises(TokenDecodeError):
        decode_token(token)


def test_decode_rejects_truncated_stream():
    compressed = deflate(b'{"a":"' + b"x" * 200 + b'"}')
    with pytest.raises(TokenDecodeError):
        decode_token(to_text(compressed[:-4]))


def test_decode_rejects_trailing_garbage():
    compressed = deflate(b'{"a":1}') + b"junk"
    with pytest.raises(TokenDecodeError):
        decode_token(to_text(compressed))


def test_inflate_enforces_payload_limit():
    compressed = deflate(b"[" + b"0," * 1000 + b"0]")
    assert inflate(compressed, max_bytes=5000).startswith(b"[0,0")
    with pytest.raises(TokenDecodeError):
        inflate(compressed, max_bytes=100)


def test_decode_enforces_token_length_limit():
    token = encode_entries([("k", "v")])
    with pytest.raises(TokenDecodeError):
        decode_token(token, CodecSettings(max_token_length=len(token) - 1))


def test_parse_payload_reports_type_in_error():
    with pytest.raises(TokenDecodeError, match="str"):
        parse_payload(b'"hello"')


@pytest.mark.parametrize("key", [2**63, -(2**63) - 1, 2**70])
def test_out_of_range_integer_keys_raise_encode_error(key):
    with pytest.raises(TokenEncodeError, match="64-bit"):
        encode_entries([(key, "v")])


def test_decode_keeps_very_long_digit_keys_as_strings():
    digits = "1" * 5000
    token = _token_for(('{"%s":1}' % digits).encode())
    assert decode_token(token) == {digits: 1}
