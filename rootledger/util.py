import datetime as dt
import hashlib

HASH_BYTES = 32


def sha256_pair(left: bytes, right: bytes) -> bytes:
    return hashlib.sha256(left + right).digest()


def hex32(value: bytes) -> str:
    return "0x" + value.hex()


def parse_hex32(s: str) -> bytes:
    # accepts with or without 0x prefix; always exactly 32 bytes
    raw = bytes.fromhex(s[2:] if s[:2].lower() == "0x" else s)
    if len(raw) != HASH_BYTES:
        raise ValueError(f"expected {HASH_BYTES} bytes, got {len(raw)}")
    return raw


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def as_utc_naive(ts: dt.datetime) -> dt.datetime:
    # timestamps are stored as naive UTC; naive input is taken to already be UTC
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(dt.timezone.utc).replace(tzinfo=None)
