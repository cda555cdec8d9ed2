"""
Tests for the authorization verifier.
"""
import threading
from unittest.mock import patch

import pytest

from blswallet_sdk.bls import aggregate_signatures
from blswallet_sdk.bls.constants import DOMAIN
from blswallet_sdk.bls.curve import hash_to_g1
from blswallet_sdk.exceptions import (
    AlreadyRegisteredError, ChainMismatchError, MalformedInputError, NonceMismatchError,
    SignatureInvalidError, UnknownWalletError,
)
from blswallet_sdk.models import RejectReason
from blswallet_sdk.wallet import AggregateSignature, AuthorizationVerifier, Payload, SingleSignature
from blswallet_sdk.wallet.payload import creation_payload

TARGET = "0x1234567890123456789012345678901234567890"
GATEWAY = "0x0355b583379be75bf8b88abe5a2124c8f65242f2"


def _payload(chain_id, nonce, call_data=b"\x01"):
    return Payload.for_call(chain_id, nonce, TARGET, call_data)


class TestVerify:

    def test_accepts_and_advances_nonce(self, verifier, wallets, signers, chain_id):
        payload = _payload(chain_id, 0)
        result = verifier.verify(payload, wallets[0].public_key_hash, SingleSignature(signers[0].sign_payload(payload)))
        assert result.accepted
        assert result.next_nonce == 1
        assert result.reason is None
        assert verifier.nonce_of(wallets[0].public_key_hash) == 1

    def test_replay_rejected(self, verifier, wallets, signers, chain_id):
        payload = _payload(chain_id, 0)
        signature = signers[0].sign_payload(payload)
        assert verifier.verify(payload, wallets[0].public_key, signature).accepted

        replay = verifier.verify(payload, wallets[0].public_key, signature)
        assert not replay.accepted
        assert replay.reason == RejectReason.NONCE_MISMATCH
        assert replay.next_nonce == 1
        with pytest.raises(NonceMismatchError) as exc_info:
            replay.raise_for_rejection()
        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 0

    @pytest.mark.parametrize("nonce", [1, 2])
    def test_future_nonce_rejected(self, verifier, wallets, signers, chain_id, nonce):
        payload = _payload(chain_id, nonce)
        result = verifier.verify(payload, wallets[0].public_key_hash, signers[0].sign_payload(payload))
        assert result.reason == RejectReason.NONCE_MISMATCH
        assert verifier.nonce_of(wallets[0].public_key_hash) == 0

    def test_chain_mismatch(self, verifier, wallets, signers, chain_id):
        payload = _payload(chain_id + 1, 0)
        result = verifier.verify(payload, wallets[0].public_key_hash, signers[0].sign_payload(payload))
        assert result.reason == RejectReason.CHAIN_MISMATCH
        assert verifier.nonce_of(wallets[0].public_key_hash) == 0
        with pytest.raises(ChainMismatchError):
            result.raise_for_rejection()

    def test_wrong_signer(self, verifier, wallets, signers, chain_id):
        payload = _payload(chain_id, 0)
        result = verifier.verify(payload, wallets[0].public_key_hash, signers[1].sign_payload(payload))
        assert result.reason == RejectReason.SIGNATURE_INVALID
        assert result.detail is None
        assert verifier.nonce_of(wallets[0].public_key_hash) == 0
        with pytest.raises(SignatureInvalidError):
            result.raise_for_rejection()

    def test_tampered_payload(self, verifier, wallets, signers, chain_id):
        signed = _payload(chain_id, 0, b"\x01")
        presented = _payload(chain_id, 0, b"\x02")
        result = verifier.verify(presented, wallets[0].public_key_hash, signers[0].sign_payload(signed))
        assert result.reason == RejectReason.SIGNATURE_INVALID

    def test_infinity_signature_rejected(self, verifier, wallets, chain_id):
        result = verifier.verify(_payload(chain_id, 0), wallets[0].public_key_hash, bytes(64))
        assert result.reason == RejectReason.SIGNATURE_INVALID

    def test_unknown_wallet_raises(self, verifier, signers, chain_id):
        payload = _payload(chain_id, 0)
        with pytest.raises(UnknownWalletError):
            verifier.verify(payload, signers[0].public_key_hash, signers[0].sign_payload(payload))

    def test_malformed_signature_raises(self, verifier, wallets, chain_id):
        with pytest.raises(MalformedInputError):
            verifier.verify(_payload(chain_id, 0), wallets[0].public_key_hash, b"\x01" * 63)

    def test_check_signature_does_not_consume(self, verifier, wallets, signers, chain_id):
        payload = _payload(chain_id, 0)
        signature = signers[0].sign_payload(payload)
        assert verifier.check_signature(payload, wallets[0].public_key_hash, signature).accepted
        assert verifier.nonce_of(wallets[0].public_key_hash) == 0
        assert verifier.verify(payload, wallets[0].public_key_hash, signature).accepted

    def test_rejections_are_rate_limited(self, verifier, wallets, chain_id):
        with patch("blswallet_sdk.wallet.verifier.rate_limited_log") as mock_log:
            verifier.verify(_payload(chain_id + 1, 0), wallets[0].public_key_hash, bytes(64))
        mock_log.assert_called_once()
        assert "chain_mismatch" in mock_log.call_args[0][0]


class TestVerifyBatch:

    def test_accepts_batch(self, verifier, wallets, signers, chain_id):
        payloads = [_payload(chain_id, 0, bytes([i])) for i in range(3)]
        signature = aggregate_signatures([s.sign_payload(p) for s, p in zip(signers, payloads)])
        result = verifier.verify_batch(payloads, [w.public_key_hash for w in wallets[:3]],
                                       AggregateSignature(signature))
        assert result.all_accepted
        assert result.next_nonces == [1, 1, 1]

    def test_same_wallet_consecutive_nonces(self, verifier, wallets, signers, chain_id):
        payloads = [_payload(chain_id, n, bytes([n])) for n in range(3)]
        signature = aggregate_signatures([signers[0].sign_payload(p) for p in payloads])
        refs = [wallets[0].public_key_hash] * 3
        result = verifier.verify_batch(payloads, refs, signature)
        assert result.all_accepted
        assert result.next_nonces == [1, 2, 3]
        assert verifier.nonce_of(wallets[0].public_key_hash) == 3

    def test_same_wallet_gap_rejected(self, verifier, wallets, signers, chain_id):
        payloads = [_payload(chain_id, 0, b"\x00"), _payload(chain_id, 2, b"\x02")]
        signature = aggregate_signatures([signers[0].sign_payload(p) for p in payloads])
        result = verifier.verify_batch(payloads, [wallets[0].public_key_hash] * 2, signature)
        assert result.accepted == [False, False]
        assert result.reason == RejectReason.NONCE_MISMATCH
        assert verifier.nonce_of(wallets[0].public_key_hash) == 0

    def test_one_bad_signature_rejects_all(self, verifier, wallets, signers, chain_id):
        payloads = [_payload(chain_id, 0, bytes([i])) for i in range(2)]
        signature = aggregate_signatures([signers[0].sign_payload(payloads[0]), signers[0].sign_payload(payloads[1])])
        result = verifier.verify_batch(payloads, [w.public_key_hash for w in wallets[:2]], signature)
        assert result.reason == RejectReason.SIGNATURE_INVALID
        assert result.next_nonces == [0, 0]
        assert not result.all_accepted

    def test_length_mismatch(self, verifier, wallets, chain_id):
        with pytest.raises(MalformedInputError):
            verifier.verify_batch([_payload(chain_id, 0)], [w.public_key_hash for w in wallets[:2]], bytes(64))

    def test_empty_batch(self, verifier):
        with pytest.raises(MalformedInputError):
            verifier.verify_batch([], [], bytes(64))

    def test_duplicate_pair_rejected(self, verifier, wallets, signers, chain_id):
        payload = _payload(chain_id, 0)
        signature = aggregate_signatures([signers[0].sign_payload(payload)] * 2)
        with pytest.raises(MalformedInputError, match="Duplicate"):
            verifier.verify_batch([payload, payload], [wallets[0].public_key_hash] * 2, signature)

    def test_single_signature_cannot_cover_batch(self, verifier, wallets, chain_id):
        payloads = [_payload(chain_id, 0, bytes([i])) for i in range(2)]
        with pytest.raises(MalformedInputError):
            verifier.verify_batch(payloads, [w.public_key_hash for w in wallets[:2]], SingleSignature(bytes(64)))

    def test_non_payload_rejected(self, verifier, wallets):
        with pytest.raises(MalformedInputError):
            verifier.verify_batch([b"raw bytes"], [wallets[0].public_key_hash], bytes(64))


class TestConcurrency:

    def test_concurrent_submissions_single_winner(self, verifier, wallets, signers, chain_id):
        payload = _payload(chain_id, 0)
        signature = signers[0].sign_payload(payload)
        barrier = threading.Barrier(4)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            result = verifier.verify(payload, wallets[0].public_key_hash, signature)
            with lock:
                results.append(result)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(r.accepted for r in results) == 1
        assert all(r.reason == RejectReason.NONCE_MISMATCH for r in results if not r.accepted)
        assert verifier.nonce_of(wallets[0].public_key_hash) == 1


class TestWalletCreation:

    @pytest.fixture
    def gateway_verifier(self, chain_id):
        return AuthorizationVerifier(chain_id, gateway_address=GATEWAY)

    def test_create_wallet(self, gateway_verifier, signer, chain_id):
        payload = creation_payload(chain_id, GATEWAY, signer.public_key_hash)
        result = gateway_verifier.create_wallet(signer.public_key, payload, signer.sign_payload(payload))
        assert result.accepted
        assert result.next_nonce == 1
        assert signer.public_key_hash in gateway_verifier.registry
        assert gateway_verifier.nonce_of(signer.public_key_hash) == 1

    def test_bad_signature_does_not_register(self, gateway_verifier, signers, chain_id):
        payload = creation_payload(chain_id, GATEWAY, signers[0].public_key_hash)
        result = gateway_verifier.create_wallet(signers[0].public_key, payload, signers[1].sign_payload(payload))
        assert result.reason == RejectReason.SIGNATURE_INVALID
        assert signers[0].public_key_hash not in gateway_verifier.registry

    def test_payload_for_another_key_rejected(self, gateway_verifier, signers, chain_id):
        payload = creation_payload(chain_id, GATEWAY, signers[1].public_key_hash)
        with pytest.raises(MalformedInputError):
            gateway_verifier.create_wallet(signers[0].public_key, payload, signers[0].sign_payload(payload))

    def test_wrong_gateway_rejected(self, gateway_verifier, signer, chain_id):
        payload = creation_payload(chain_id, TARGET, signer.public_key_hash)
        with pytest.raises(MalformedInputError):
            gateway_verifier.create_wallet(signer.public_key, payload, signer.sign_payload(payload))

    def test_existing_wallet_rejected(self, gateway_verifier, signer, chain_id):
        gateway_verifier.register_wallet(signer.public_key)
        payload = creation_payload(chain_id, GATEWAY, signer.public_key_hash)
        with pytest.raises(AlreadyRegisteredError):
            gateway_verifier.create_wallet(signer.public_key, payload, signer.sign_payload(payload))

    def test_create_wallets_batch(self, gateway_verifier, signers, chain_id):
        payloads = [creation_payload(chain_id, GATEWAY, s.public_key_hash) for s in signers[:3]]
        signature = aggregate_signatures([s.sign_payload(p) for s, p in zip(signers, payloads)])
        result = gateway_verifier.create_wallets([s.public_key for s in signers[:3]], payloads, signature)
        assert result.all_accepted
        assert result.next_nonces == [1, 1, 1]
        assert len(gateway_verifier.registry) == 3

    def test_create_wallets_is_atomic(self, gateway_verifier, signers, chain_id):
        payloads = [creation_payload(chain_id, GATEWAY, s.public_key_hash) for s in signers[:2]]
        signature = aggregate_signatures([signers[0].sign_payload(payloads[0])])
        result = gateway_verifier.create_wallets([s.public_key for s in signers[:2]], payloads, signature)
        assert not result.all_accepted
        assert len(gateway_verifier.registry) == 0

    @pytest.mark.parametrize("as_hex", [False, True])
    def test_create_wallets_accepts_raw_signature(self, gateway_verifier, signers, chain_id, as_hex):
        payloads = [creation_payload(chain_id, GATEWAY, s.public_key_hash) for s in signers[:2]]
        signature = aggregate_signatures([s.sign_payload(p) for s, p in zip(signers, payloads)])
        if as_hex:
            signature = "0x" + signature.hex()
        result = gateway_verifier.create_wallets([s.public_key for s in signers[:2]], payloads, signature)
        assert result.all_accepted
        assert [s.public_key_hash in gateway_verifier.registry for s in signers[:2]] == [True, True]

    def test_create_wallets_single_signature_needs_one_payload(self, gateway_verifier, signers, chain_id):
        payloads = [creation_payload(chain_id, GATEWAY, s.public_key_hash) for s in signers[:2]]
        with pytest.raises(MalformedInputError):
            gateway_verifier.create_wallets([s.public_key for s in signers[:2]], payloads,
                                            SingleSignature(signers[0].sign_payload(payloads[0])))
        assert len(gateway_verifier.registry) == 0


class TestSignatureVariants:

    @pytest.fixture
    def message_points(self, chain_id):
        payloads = [_payload(chain_id, 0, bytes([i])) for i in range(2)]
        return payloads, [hash_to_g1(p.encode(), DOMAIN) for p in payloads]

    def test_single_checks_one_pair(self, wallets, signers, message_points):
        payloads, points = message_points
        single = SingleSignature(signers[0].sign_payload(payloads[0]))
        assert single.verifies(wallets[0].point, points[0])
        assert not single.verifies(wallets[1].point, points[0])
        assert not single.verifies(wallets[0].point, points[1])

    def test_single_infinity_never_verifies(self, wallets, message_points):
        _, points = message_points
        assert not SingleSignature(bytes(64)).verifies(wallets[0].point, points[0])

    def test_aggregate_checks_every_pair(self, wallets, signers, message_points):
        payloads, points = message_points
        aggregate = AggregateSignature(aggregate_signatures(
            [s.sign_payload(p) for s, p in zip(signers, payloads)]
        ))
        keys = [w.point for w in wallets[:2]]
        assert aggregate.verifies(keys, points)
        assert not aggregate.verifies(keys[::-1], points)
        assert not aggregate.verifies(keys[:1], points[:1])

    def test_aggregate_requires_matching_lengths(self, wallets, message_points):
        _, points = message_points
        with pytest.raises(MalformedInputError):
            AggregateSignature(bytes(64)).verifies([wallets[0].point], points)

    def test_verify_dispatches_on_variant(self, verifier, wallets, signers, chain_id):
        payload = _payload(chain_id, 0)
        signature = signers[0].sign_payload(payload)
        with patch.object(SingleSignature, "verifies", autospec=True, return_value=True) as single, \
                patch.object(AggregateSignature, "verifies", autospec=True, return_value=True) as aggregate:
            verifier.check_signature(payload, wallets[0].public_key_hash, signature)
            single.assert_called_once()
            aggregate.assert_not_called()
            verifier.verify_batch([payload], [wallets[0].public_key_hash], signature)
            aggregate.assert_called_once()


def test_register_wallet_starts_at_zero(verifier, signer):
    wallet = verifier.register_wallet(signer.public_key)
    assert verifier.nonce_of(wallet.public_key_hash) == 0
    with pytest.raises(AlreadyRegisteredError):
        verifier.register_wallet(signer.public_key)


def test_constructor_validation():
    with pytest.raises(MalformedInputError):
        AuthorizationVerifier(-1)
    with pytest.raises(MalformedInputError):
        AuthorizationVerifier(1, domain=b"short")


def test_from_network():
    verifier = AuthorizationVerifier.from_network("local")
    assert verifier.chain_id == 31337
    assert verifier.gateway_address.lower() == GATEWAY
