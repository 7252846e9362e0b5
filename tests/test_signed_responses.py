from __future__ import annotations

import pytest

from flightsurety.crypto.sig import (
    canonical_response_message,
    generate_keypair,
    sign_ed25519,
    sign_response,
    verify_ed25519_signature,
)
from flightsurety.runtime.errors import InvalidSignature
from flightsurety.testing.fixtures import (
    deterministic_ed25519_keypair,
    fund_owner_and_register_flight,
    make_service,
    register_oracles_with_index,
)


def _signed_setup(n: int = 3):
    svc = make_service()
    owner, flight, ts = fund_owner_and_register_flight(svc)
    keys = {f"oracle-{i}": deterministic_ed25519_keypair(label=f"oracle-{i}") for i in range(2000)}
    pubkeys = {k: v[1] for k, v in keys.items()}
    oracles = register_oracles_with_index(svc, 7, n, pubkeys=pubkeys)
    svc.request_flight_status(owner, flight)
    return svc, owner, flight, ts, oracles, keys


def _sig(keys, identity, owner, flight, ts, code, index=7) -> str:
    return sign_response(
        privkey=keys[identity][0],
        identity=identity,
        index=index,
        airline=owner,
        flight=flight,
        timestamp=ts,
        status_code=code,
    )


def test_canonical_message_is_key_order_independent() -> None:
    m = canonical_response_message(identity="o", index=1, airline="a", flight="f", timestamp=2, status_code=10)
    assert m == b'{"airline":"a","flight":"f","identity":"o","index":1,"status_code":10,"timestamp":2}'


def test_generated_keypair_signs_and_verifies() -> None:
    priv, pub = generate_keypair()
    msg = b"hello"
    sig = sign_ed25519(message=msg, privkey=priv)
    assert verify_ed25519_signature(message=msg, sig=sig, pubkey=pub)
    assert not verify_ed25519_signature(message=b"other", sig=sig, pubkey=pub)
    assert not verify_ed25519_signature(message=msg, sig="00" * 64, pubkey=pub)


def test_signed_responses_reach_consensus() -> None:
    svc, owner, flight, ts, oracles, keys = _signed_setup()
    last = None
    for o in oracles:
        last = svc.submit_response(o, 7, owner, flight, ts, 20, sig=_sig(keys, o, owner, flight, ts, 20))
    assert last is not None and last.finalized
    assert svc.get_flight(owner, flight).status_code == 20


def test_missing_or_wrong_signature_is_rejected_without_a_vote() -> None:
    svc, owner, flight, ts, oracles, keys = _signed_setup(n=2)
    o = oracles[0]

    with pytest.raises(InvalidSignature):
        svc.submit_response(o, 7, owner, flight, ts, 20)

    # Signed for a different status code.
    with pytest.raises(InvalidSignature):
        svc.submit_response(o, 7, owner, flight, ts, 20, sig=_sig(keys, o, owner, flight, ts, 10))

    # Signed by another oracle's key.
    with pytest.raises(InvalidSignature):
        svc.submit_response(o, 7, owner, flight, ts, 20, sig=_sig(keys, oracles[1], owner, flight, ts, 20))

    assert svc.get_request(owner, flight, ts).responses == {}
    assert svc.submit_response(o, 7, owner, flight, ts, 20, sig=_sig(keys, o, owner, flight, ts, 20)).votes == 1
