from __future__ import annotations

import pytest

from scalebridge.core.codec import ACKNOWLEDGED, decode, encode, terminator
from scalebridge.core.errors import DecodeError, EncodeError
from scalebridge.core.model import LogicalCommand, Protocol, Stability, WeightReading


def test_encode_dfw_appends_crlf() -> None:
    assert encode(Protocol.DFW_ASCII, "READ") == b"READ\r\n"


def test_encode_rincmd_uses_token_verbatim() -> None:
    assert encode(Protocol.RINCMD, "21120008:0C") == b"21120008:0C\r\n"


def test_encode_does_not_double_terminate() -> None:
    assert encode(Protocol.DFW_ASCII, "TARE\r\n") == b"TARE\r\n"


def test_encode_rejects_empty_and_non_ascii_tokens() -> None:
    with pytest.raises(EncodeError):
        encode(Protocol.DFW_ASCII, "   ")
    with pytest.raises(EncodeError):
        encode(Protocol.DFW_ASCII, "LÉSEN")


def test_terminator_is_crlf_for_all_protocols() -> None:
    for protocol in Protocol:
        assert terminator(protocol) == b"\r\n"


def test_dfw_short_form() -> None:
    reading = decode(Protocol.DFW_ASCII, b"st,GS,    25.50,kg\r\n", LogicalCommand.READ_GROSS)
    assert reading == WeightReading(
        gross_weight=25.50,
        unit="kg",
        stability=Stability.STABLE,
        raw_status_code="st",
    )


def test_dfw_extended_form() -> None:
    raw = b"st,1,    15.30,PT     10.20,         0,kg\r\n"
    reading = decode(Protocol.DFW_ASCII, raw, LogicalCommand.READ_NET)
    assert isinstance(reading, WeightReading)
    assert reading.gross_weight is None
    assert reading.net_weight == 15.30
    assert reading.tare_weight == 10.20
    assert reading.unit == "kg"
    assert reading.stability is Stability.STABLE


def test_dfw_ok_is_acknowledged() -> None:
    assert decode(Protocol.DFW_ASCII, b"OK\r\n", LogicalCommand.TARE) is ACKNOWLEDGED
    assert decode(Protocol.DFW_ASCII, b"ok\r\n") is ACKNOWLEDGED


def test_dfw_compact_form_with_attached_unit() -> None:
    reading = decode(Protocol.DFW_ASCII, b"ST,GS,+00023.450kg\r\n")
    assert reading.gross_weight == 23.45
    assert reading.unit == "kg"
    assert reading.stability is Stability.STABLE
    assert reading.raw_status_code == "ST"


def test_dfw_net_tag_fills_net_weight() -> None:
    reading = decode(Protocol.DFW_ASCII, b"US,NT,-12.5kg\r\n")
    assert reading.net_weight == -12.5
    assert reading.gross_weight is None
    assert reading.stability is Stability.UNSTABLE


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        ("st", Stability.STABLE),
        ("us", Stability.UNSTABLE),
        ("ol", Stability.OVERLOAD),
        ("ul", Stability.UNDERLOAD),
        ("xx", Stability.UNKNOWN),
    ],
)
def test_dfw_status_codes(status: str, expected: Stability) -> None:
    reading = decode(Protocol.DFW_ASCII, f"{status},GS,1.00,kg\r\n".encode())
    assert reading.stability is expected
    assert reading.raw_status_code == status


@pytest.mark.parametrize(
    "raw",
    [
        b"st,GS,25.50\r\n\x00",
        b"st,GS,25.50,kg,extra,fields,here\r\n",
        b"st,GS,abc,kg\r\n",
        b"st,XX,25.50,kg\r\n",
        b"st,1,15.30,PT 10.20,many,kg\r\n",
        b"st,GS,25.50,12\r\n",
        b"\r\n",
        b"",
        b"\xff\xfe\r\n",
    ],
)
def test_dfw_malformed_replies_raise_decode_error(raw: bytes) -> None:
    with pytest.raises(DecodeError):
        decode(Protocol.DFW_ASCII, raw, LogicalCommand.READ_GROSS)


def test_malformed_reply_fails_every_time() -> None:
    raw = b"st,GS,25.50,kg,1\r\n"
    for _ in range(5):
        with pytest.raises(DecodeError):
            decode(Protocol.DFW_ASCII, raw)


def test_decode_is_deterministic() -> None:
    raw = b"st,1,    15.30,PT     10.20,         0,kg\r\n"
    readings = {decode(Protocol.DFW_ASCII, raw) for _ in range(10)}
    assert len(readings) == 1


def test_read_command_rejects_acknowledgement() -> None:
    with pytest.raises(DecodeError):
        decode(Protocol.DFW_ASCII, b"OK\r\n", LogicalCommand.READ_GROSS)


def test_rincmd_register_echo() -> None:
    gross = decode(Protocol.RINCMD, b"20050026+123.45kg\r\n")
    assert gross.gross_weight == 123.45
    assert gross.net_weight is None

    net = decode(Protocol.RINCMD, b"20050025-23.5kg\r\n")
    assert net.net_weight == -23.5
    assert net.gross_weight is None


def test_rincmd_register_reply_with_spaced_sign_and_flag() -> None:
    reading = decode(Protocol.RINCMD, b"81050026:-     23 kg G\r\n", LogicalCommand.READ_GROSS)
    assert reading.gross_weight == -23.0
    assert reading.unit == "kg"
    assert reading.raw_status_code == "G"
    assert reading.stability is Stability.STABLE


def test_rincmd_net_flag_fills_net_weight() -> None:
    reading = decode(Protocol.RINCMD, b"81050025: +123.45 kg N\r\n", LogicalCommand.READ_GROSS)
    assert reading.net_weight == 123.45
    assert reading.gross_weight is None


def test_rincmd_hex_twos_complement() -> None:
    reading = decode(Protocol.RINCMD, b"81050026:FFFFFFE9\r\n")
    assert reading.gross_weight == -23.0


def test_rincmd_status_form() -> None:
    stable = decode(Protocol.RINCMD, b"S -32.000 kg\r\n")
    assert stable.gross_weight == -32.0
    assert stable.stability is Stability.STABLE

    unstable = decode(Protocol.RINCMD, b"U 00032.000kg\r\n", LogicalCommand.READ_NET)
    assert unstable.net_weight == 32.0
    assert unstable.stability is Stability.UNSTABLE


def test_rincmd_normalizes_unicode_minus() -> None:
    reading = decode(Protocol.RINCMD, "S −5.5 kg\r\n".encode("utf-8"))
    assert reading.gross_weight == -5.5


def test_rincmd_empty_register_reply_is_acknowledged() -> None:
    assert decode(Protocol.RINCMD, b"21120008:\r\n", LogicalCommand.TARE) is ACKNOWLEDGED


@pytest.mark.parametrize("raw", [b"E\r\n", b"81050026:E\r\n", b"garbage\r\n", b"81050026:kg\r\n"])
def test_rincmd_errors(raw: bytes) -> None:
    with pytest.raises(DecodeError):
        decode(Protocol.RINCMD, raw, LogicalCommand.READ_GROSS)


@pytest.mark.parametrize(
    ("protocol", "raw"),
    [
        (Protocol.DFW_ASCII, "st,GS,２５.50,kg\r\n"),
        (Protocol.DFW_ASCII, "st,١,15.30,PT 10.20,0,kg\r\n"),
        (Protocol.RINCMD, "20050026+１２3.45kg\r\n"),
        (Protocol.RINCMD, "S ٣٢.000 kg\r\n"),
    ],
)
def test_non_ascii_digits_are_rejected(protocol: Protocol, raw: str) -> None:
    with pytest.raises(DecodeError, match="non-ASCII"):
        decode(protocol, raw.encode("utf-8"), LogicalCommand.READ_GROSS)


def test_rincmd_accepts_non_breaking_space() -> None:
    reading = decode(Protocol.RINCMD, "S\u00a032.000\u00a0kg\r\n".encode("utf-8"))
    assert reading.gross_weight == 32.0
