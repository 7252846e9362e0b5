# src/flightsurety/crypto/sig.py
from __future__ import annotations

"""Ed25519 signatures over oracle responses.

Keys and signatures travel as hex (base64/base64url is also accepted). The
signed message is the canonical JSON of the response fields, so the verifier
rebuilds it from the submitted values and the registered identity.
"""

import base64
import binascii
import hashlib
import json
from typing import Any, Dict, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

Json = Dict[str, Any]


def _decode_bytes(s: str) -> bytes:
    text = str(s or "").strip()
    if not text:
        raise ValueError("empty key or signature")
    try:
        return bytes.fromhex(text)
    except ValueError:
        pass
    try:
        return base64.urlsafe_b64decode(text.replace("+", "-").replace("/", "_") + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as e:
        raise ValueError("expected hex or base64") from e


def canonical_response_message(
    *,
    identity: str,
    index: int,
    airline: str,
    flight: str,
    timestamp: int,
    status_code: int,
) -> bytes:
    obj: Json = {
        "identity": str(identity),
        "index": int(index),
        "airline": str(airline),
        "flight": str(flight),
        "timestamp": int(timestamp),
        "status_code": int(status_code),
    }
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _keypair_hex(key: Ed25519PrivateKey) -> Tuple[str, str]:
    priv = key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    pub = key.public_key().public_bytes(encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw)
    return priv.hex(), pub.hex()


def generate_keypair() -> Tuple[str, str]:
    """Return (privkey_hex, pubkey_hex) for a fresh Ed25519 key."""
    return _keypair_hex(Ed25519PrivateKey.generate())


def derive_keypair(label: str) -> Tuple[str, str]:
    """Return the Ed25519 keypair whose seed is sha256(label). Same label, same key."""
    seed = hashlib.sha256(("flightsurety-ed25519:" + str(label or "")).encode("utf-8")).digest()
    return _keypair_hex(Ed25519PrivateKey.from_private_bytes(seed))


def sign_ed25519(*, message: bytes, privkey: str, encoding: str = "hex") -> str:
    """Sign with a 32-byte seed (a 64-byte seed||pubkey blob is also accepted)."""
    raw = _decode_bytes(privkey)[:32]
    if len(raw) != 32:
        raise ValueError("ed25519 private key must be at least 32 bytes")
    sig = Ed25519PrivateKey.from_private_bytes(raw).sign(message)
    if encoding == "hex":
        return sig.hex()
    if encoding in {"b64", "base64"}:
        return base64.b64encode(sig).decode("ascii")
    raise ValueError(f"unsupported signature encoding: {encoding!r}")


def verify_ed25519_signature(*, message: bytes, sig: str, pubkey: str) -> bool:
    try:
        sig_b = _decode_bytes(sig)
        pk_b = _decode_bytes(pubkey)
        key = Ed25519PublicKey.from_public_bytes(pk_b)
        key.verify(sig_b, message)
        return True
    except (InvalidSignature, ValueError):
        return False


def sign_response(
    *,
    privkey: str,
    identity: str,
    index: int,
    airline: str,
    flight: str,
    timestamp: int,
    status_code: int,
    encoding: str = "hex",
) -> str:
    msg = canonical_response_message(
        identity=identity, index=index, airline=airline, flight=flight, timestamp=timestamp, status_code=status_code
    )
    return sign_ed25519(message=msg, privkey=privkey, encoding=encoding)
