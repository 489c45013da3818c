"""
Codec for the batched WNS reverse lookup.

Only two call shapes are supported: Multicall3 ``aggregate3`` wrapping
``reverseResolve(address)`` sub-calls, and the ``(bool, bytes)[]`` it returns.
"""

import re
from typing import List, Optional, Sequence

WNS_CONTRACT = "0x0000000000696760E15f265e828DB644A0c242EB"
MULTICALL3 = "0xcA11bde05977b3631167028862bE2a173976CA11"

# keccak256("reverseResolve(address)")[0:4]
REVERSE_RESOLVE_SELECTOR = "0x9af8b7aa"
# keccak256("aggregate3((address,bool,bytes)[])")[0:4]
AGGREGATE3_SELECTOR = "0x82ad56cb"

WORD = 32
CALL3_WORDS = 6
MAX_NAME_LENGTH = 64

ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
_HEX_RE = re.compile(r"[0-9a-fA-F]*")

# C0/C1 controls, zero-width and bidi marks, bidi embeddings/overrides,
# word joiner and isolates, BOM.
_UNSAFE_NAME_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f\u200b-\u200f\u202a-\u202e\u2060-\u2069\ufeff]")


def sanitize_name(name: str) -> Optional[str]:
    """Strip spoofing characters and cap the length; empty becomes None."""
    cleaned = _UNSAFE_NAME_CHARS.sub("", name)
    if not cleaned:
        return None
    return cleaned[:MAX_NAME_LENGTH]


def _pad32(b: bytes) -> bytes:
    if len(b) == WORD:
        return b
    if len(b) > WORD:
        raise ValueError("Encoded value exceeds 32 bytes.")
    return b.rjust(WORD, b"\x00")


def _uint_word(value: int) -> bytes:
    return value.to_bytes(WORD, "big")


def _address_bytes(address: str) -> bytes:
    if not isinstance(address, str) or not ADDRESS_PATTERN.fullmatch(address.strip()):
        raise ValueError(f"Invalid address '{address}'. Expected 0x-prefixed 40 hex characters.")
    return bytes.fromhex(address.strip().lower()[2:])


def _hex_to_bytes(value: str) -> bytes:
    if not isinstance(value, str):
        raise ValueError("Result must be a hex string.")
    v = value.strip()
    v = v[2:] if v.startswith("0x") else v
    if len(v) % 2 != 0:
        v = "0" + v
    if not _HEX_RE.fullmatch(v):
        raise ValueError("Result must be a hex string.")
    return bytes.fromhex(v)


def _read_word(data_bytes: bytes, offset: int) -> bytes:
    end = offset + WORD
    if offset < 0 or end > len(data_bytes):
        raise ValueError("Result shorter than expected for ABI decoding.")
    return data_bytes[offset:end]


def _read_uint(data_bytes: bytes, offset: int) -> int:
    return int.from_bytes(_read_word(data_bytes, offset), "big")


def _encode_dynamic_bytes(data: bytes) -> bytes:
    padded = data + b"\x00" * ((WORD - (len(data) % WORD)) % WORD)
    return _uint_word(len(data)) + padded


def encode_reverse_resolve(address: str) -> str:
    """Calldata for ``reverseResolve(address)``: selector + padded address."""
    return REVERSE_RESOLVE_SELECTOR + _pad32(_address_bytes(address)).hex()


def encode_multicall(addresses: Sequence[str]) -> str:
    """
    Encode ``aggregate3(Call3[])`` with one ``reverseResolve`` call per address.

    Every Call3 element is static-sized (6 words), so element i sits at
    ``n * 32 + i * 192`` bytes after the array length word.
    """
    n = len(addresses)
    if n == 0:
        raise ValueError("At least one address is required.")

    target = _pad32(_address_bytes(WNS_CONTRACT))
    head: List[bytes] = [_uint_word(WORD), _uint_word(n)]
    for i in range(n):
        head.append(_uint_word(n * WORD + i * CALL3_WORDS * WORD))

    elements: List[bytes] = []
    for address in addresses:
        calldata = bytes.fromhex(encode_reverse_resolve(address)[2:])
        elements.append(target)
        elements.append(_uint_word(1))  # allowFailure
        elements.append(_uint_word(3 * WORD))  # offset to calldata within the tuple
        elements.append(_encode_dynamic_bytes(calldata))

    return AGGREGATE3_SELECTOR + b"".join(head + elements).hex()


def _decode_slot(data_bytes: bytes, array_base: int, index: int) -> Optional[str]:
    base = array_base + _read_uint(data_bytes, array_base + index * WORD)
    if _read_uint(data_bytes, base) != 1:
        return None

    bytes_base = base + _read_uint(data_bytes, base + WORD)
    bytes_len = _read_uint(data_bytes, bytes_base)
    if not bytes_len:
        return None

    # returnData is itself abi.encode(string): offset word, length word, payload.
    return_base = bytes_base + WORD
    if bytes_len < 2 * WORD or return_base + bytes_len > len(data_bytes):
        raise ValueError("Return data truncated.")
    string_base = return_base + _read_uint(data_bytes, return_base)
    string_len = _read_uint(data_bytes, string_base)
    if not string_len:
        return None

    start = string_base + WORD
    end = start + string_len
    if end > return_base + bytes_len:
        raise ValueError("String payload truncated.")
    return sanitize_name(data_bytes[start:end].decode("utf-8"))


def decode_aggregate3(payload: Optional[str]) -> List[Optional[str]]:
    """
    Decode the ``(bool success, bytes returnData)[]`` result of aggregate3.

    Returns one entry per sub-call, ``None`` where the call failed, returned
    nothing, or could not be decoded. A payload that is missing or not
    structurally an array yields an empty list.
    """
    if not payload or payload.strip() == "0x":
        return []
    try:
        data_bytes = _hex_to_bytes(payload)
        n = _read_uint(data_bytes, WORD)
    except ValueError:
        return []
    if not n:
        return []

    array_base = 2 * WORD
    if array_base + n * WORD > len(data_bytes):
        return []

    names: List[Optional[str]] = []
    for i in range(n):
        try:
            names.append(_decode_slot(data_bytes, array_base, i))
        except (ValueError, UnicodeDecodeError):
            names.append(None)
    return names


def encode_aggregate3_result(names: Sequence[Optional[str]], failed: Sequence[int] = ()) -> str:
    """
    Build the payload Multicall3 would return for ``names``.

    ``None`` entries encode a successful call with empty return data; indexes
    in ``failed`` encode ``success = false``.
    """
    n = len(names)
    head: List[bytes] = [_uint_word(WORD), _uint_word(n)]
    tails: List[bytes] = []
    offset = n * WORD
    for i, name in enumerate(names):
        if name is None:
            return_data = b""
        else:
            raw = name.encode("utf-8")
            return_data = _uint_word(WORD) + _encode_dynamic_bytes(raw)
        tail = _uint_word(0 if i in failed else 1) + _uint_word(2 * WORD) + _encode_dynamic_bytes(return_data)
        head.append(_uint_word(offset))
        tails.append(tail)
        offset += len(tail)
    return "0x" + b"".join(head + tails).hex()


def decode_multicall_addresses(calldata: str) -> List[str]:
    """Recover the addresses passed to ``reverseResolve`` in aggregate3 calldata."""
    data_bytes = _hex_to_bytes(calldata)
    if data_bytes[:4].hex() != AGGREGATE3_SELECTOR[2:]:
        raise ValueError("Calldata is not an aggregate3 call.")
    body = data_bytes[4:]
    n = _read_uint(body, WORD)
    array_base = 2 * WORD

    addresses: List[str] = []
    for i in range(n):
        element = array_base + _read_uint(body, array_base + i * WORD)
        call_base = element + _read_uint(body, element + 2 * WORD)
        call_len = _read_uint(body, call_base)
        call = body[call_base + WORD : call_base + WORD + call_len]
        if len(call) != 4 + WORD or call[:4].hex() != REVERSE_RESOLVE_SELECTOR[2:]:
            raise ValueError(f"Call {i} is not reverseResolve(address).")
        addresses.append("0x" + call[4 + 12 :].hex())
    return addresses
