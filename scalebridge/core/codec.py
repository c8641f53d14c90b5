"""Wire codecs for the supported indicator protocols.

Both protocols are line oriented::

    DFW_ASCII  request:  READ\\r\\n
               replies:  st,GS,    25.50,kg\\r\\n
                         st,1,    15.30,PT     10.20,         0,kg\\r\\n
                         OK\\r\\n

    RINCMD     request:  20050026\\r\\n
               replies:  20050026+123.45kg\\r\\n      (register echo)
                         81050026:-     23 kg G\\r\\n (register reply)
                         S 00032.000 kg\\r\\n         (status form)
                         E\\r\\n                      (device error)

Nothing in this module performs I/O. ``decode`` is total: it returns a
``WeightReading``, returns ``ACKNOWLEDGED``, or raises ``DecodeError``.
"""

from __future__ import annotations

import re

from scalebridge.core.errors import DecodeError, EncodeError
from scalebridge.core.model import LogicalCommand, Protocol, Stability, WeightReading

CRLF = b"\r\n"


class _Acknowledged:
    """Marker for a successful reply that carries no weight (tare/zero)."""

    def __repr__(self) -> str:
        return "ACKNOWLEDGED"


ACKNOWLEDGED = _Acknowledged()

_NUMBER_RE = re.compile(r"^([+-]?)\s*(\d+(?:\.\d*)?|\.\d+)$", re.ASCII)
_VALUE_UNIT_RE = re.compile(r"^([+-]?)\s*(\d+(?:\.\d*)?)\s*([A-Za-z%]+)$", re.ASCII)
_TARE_PREFIX_RE = re.compile(r"^(?:PT|T)\s*", re.IGNORECASE)
_UNIT_RE = re.compile(r"^[A-Za-z%]+$")

_DFW_STABILITY = {
    "st": Stability.STABLE,
    "us": Stability.UNSTABLE,
    "ol": Stability.OVERLOAD,
    "ul": Stability.UNDERLOAD,
}

_RIN_NET_REGISTER = "20050025"
_RIN_DEFAULT_UNIT = "kg"
_RIN_ECHO_RE = re.compile(r"^(\d{8})\s*([+-])\s*(\d+(?:\.\d+)?)\s*([A-Za-z%]+)$", re.ASCII)
_RIN_REPLY_RE = re.compile(r"^([0-9A-Fa-f]{8}):(.*)$")
_RIN_WEIGHT_RE = re.compile(
    r"^([+-]?)\s*(\d+(?:\.\d+)?)\s*([A-Za-z%]+?)?(?:\s*\b([GNTZ]))?$",
    re.IGNORECASE | re.ASCII,
)
_RIN_HEX_RE = re.compile(r"^([0-9A-Fa-f]{8})(?:\s+([A-Za-z%]+))?$")
_RIN_STATUS_RE = re.compile(r"^([SU])\s+([+-]?)\s*(\d+(?:\.\d+)?)\s*([A-Za-z%]+)?$", re.ASCII)
_DASHES = "\u2212\u2013\u2014\u2015\u2011\uff0d"
_SPACES = "\t\x0b\x0c\u00a0 "


def terminator(protocol: Protocol) -> bytes:
    """Return the byte sequence that ends a reply for ``protocol``."""
    if protocol is Protocol.DFW_ASCII:
        return CRLF
    if protocol is Protocol.RINCMD:
        return CRLF
    raise EncodeError(f"Unsupported protocol {protocol!r}")


def encode(protocol: Protocol, wire_token: str) -> bytes:
    """Frame a configured wire token for transmission.

    The token is used verbatim apart from surrounding whitespace. A token that
    already carries the line terminator is not terminated twice.
    """
    token = wire_token.strip()
    if not token:
        raise EncodeError("Wire token must not be empty")
    try:
        payload = token.encode("ascii")
    except UnicodeEncodeError as exc:
        raise EncodeError(f"Wire token {wire_token!r} is not ASCII") from exc

    if protocol is Protocol.DFW_ASCII:
        return payload + CRLF
    if protocol is Protocol.RINCMD:
        return payload + CRLF
    raise EncodeError(f"Unsupported protocol {protocol!r}")


def decode(
    protocol: Protocol,
    raw: bytes,
    command: LogicalCommand | None = None,
) -> WeightReading | _Acknowledged:
    """Decode one raw reply into a reading or the ``ACKNOWLEDGED`` marker.

    ``command`` tells the decoder which weight field an untagged value belongs
    to, and that read commands must carry a weight.
    """
    try:
        text = bytes(raw).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Reply is not valid text: {raw!r}") from exc

    text = text.strip("\r\n")
    if not text.strip():
        raise DecodeError("Empty reply from device")
    if protocol is Protocol.RINCMD:
        text = _normalize_rincmd(text)
    # RINCMD tolerates typographic dashes and spaces; anything else must be ASCII.
    if not text.isascii():
        raise DecodeError(f"Reply contains non-ASCII characters: {text!r}")

    if protocol is Protocol.DFW_ASCII:
        decoded = _decode_dfw(text)
    elif protocol is Protocol.RINCMD:
        decoded = _decode_rincmd(text, command)
    else:
        raise DecodeError(f"Unsupported protocol {protocol!r}")

    if decoded is ACKNOWLEDGED and command is not None and command.is_read:
        raise DecodeError(f"Reply {text!r} to {command.value} carried no weight")
    return decoded


def _parse_number(field: str, *, context: str) -> float:
    match = _NUMBER_RE.match(field.strip())
    if not match:
        raise DecodeError(f"Could not parse {context} from {field!r}")
    sign, digits = match.groups()
    return float(f"{sign}{digits}")


def _parse_unit(field: str) -> str:
    unit = field.strip()
    if not _UNIT_RE.match(unit):
        raise DecodeError(f"Invalid unit field {field!r}")
    return unit


def _decode_dfw(text: str) -> WeightReading | _Acknowledged:
    if text.strip().upper() == "OK":
        return ACKNOWLEDGED

    fields = [field.strip() for field in text.split(",")]
    status = fields[0]
    stability = _DFW_STABILITY.get(status.lower(), Stability.UNKNOWN)

    if len(fields) == 6:
        scale_number, net, tare, count, unit = fields[1:]
        if not scale_number.isdigit():
            raise DecodeError(f"Invalid scale number {scale_number!r} in {text!r}")
        try:
            int(count)
        except ValueError:
            raise DecodeError(f"Invalid piece count {count!r} in {text!r}") from None
        return WeightReading(
            net_weight=_parse_number(net, context="net weight"),
            tare_weight=_parse_number(_TARE_PREFIX_RE.sub("", tare), context="tare weight"),
            unit=_parse_unit(unit),
            stability=stability,
            raw_status_code=status,
        )

    if len(fields) == 4:
        tag, weight, unit = fields[1:]
        value = _parse_number(weight, context="weight")
        unit = _parse_unit(unit)
    elif len(fields) == 3:
        tag, compact = fields[1:]
        match = _VALUE_UNIT_RE.match(compact)
        if not match:
            raise DecodeError(f"Could not parse weight and unit from {compact!r}")
        sign, digits, unit = match.groups()
        value = float(f"{sign}{digits}")
    else:
        raise DecodeError(f"Unexpected field count {len(fields)} in DFW reply {text!r}")

    tag = tag.upper()
    if tag == "GS":
        return WeightReading(gross_weight=value, unit=unit, stability=stability, raw_status_code=status)
    if tag == "NT":
        return WeightReading(net_weight=value, unit=unit, stability=stability, raw_status_code=status)
    raise DecodeError(f"Unknown weight tag {tag!r} in DFW reply {text!r}")


def _normalize_rincmd(text: str) -> str:
    cleaned = text.strip()
    for char in _SPACES:
        cleaned = cleaned.replace(char, " ")
    for char in _DASHES:
        cleaned = cleaned.replace(char, "-")
    return cleaned.strip()


def _rin_reading(
    value: float,
    unit: str | None,
    *,
    net: bool,
    stability: Stability,
    raw_status_code: str = "",
) -> WeightReading:
    unit = unit or _RIN_DEFAULT_UNIT
    if net:
        return WeightReading(net_weight=value, unit=unit, stability=stability, raw_status_code=raw_status_code)
    return WeightReading(gross_weight=value, unit=unit, stability=stability, raw_status_code=raw_status_code)


def _decode_rincmd(text: str, command: LogicalCommand | None) -> WeightReading | _Acknowledged:
    wants_net = command is LogicalCommand.READ_NET

    if text.upper() == "E":
        raise DecodeError("Device returned error 'E'")
    if text.upper() == "OK":
        return ACKNOWLEDGED

    match = _RIN_ECHO_RE.match(text)
    if match:
        register, sign, digits, unit = match.groups()
        return _rin_reading(
            float(f"{sign}{digits}"),
            unit.lower(),
            net=register == _RIN_NET_REGISTER,
            stability=Stability.STABLE,
        )

    match = _RIN_REPLY_RE.match(text)
    if match:
        register, payload = match.group(1), match.group(2).strip()
        if not payload:
            return ACKNOWLEDGED
        if payload.upper() == "E":
            raise DecodeError(f"Device returned error 'E' for register {register}")
        return _decode_rincmd_payload(payload, register, wants_net)

    match = _RIN_STATUS_RE.match(text)
    if match:
        flag, sign, digits, unit = match.groups()
        return _rin_reading(
            float(f"{sign}{digits}"),
            unit,
            net=wants_net,
            stability=Stability.STABLE if flag == "S" else Stability.UNSTABLE,
            raw_status_code=flag,
        )

    raise DecodeError(f"Unexpected RINCMD reply {text!r}")


def _decode_rincmd_payload(payload: str, register: str, wants_net: bool) -> WeightReading:
    match = _RIN_HEX_RE.match(payload)
    if match and any(char in "abcdefABCDEF" for char in match.group(1)):
        value = int(match.group(1), 16)
        if value >= 2**31:
            value -= 2**32
        return _rin_reading(
            float(value),
            match.group(2),
            net=wants_net or register == _RIN_NET_REGISTER,
            stability=Stability.STABLE,
        )

    match = _RIN_WEIGHT_RE.match(payload)
    if not match:
        raise DecodeError(f"Unexpected RINCMD payload {payload!r} for register {register}")
    sign, digits, unit, flag = match.groups()
    flag = (flag or "").upper()
    if flag:
        net = flag == "N"
    else:
        net = wants_net or register == _RIN_NET_REGISTER
    return _rin_reading(
        float(f"{sign}{digits}"),
        unit.lower() if unit else None,
        net=net,
        stability=Stability.STABLE,
        raw_status_code=flag,
    )
