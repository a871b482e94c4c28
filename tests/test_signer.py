"""
Tests for the local Ed25519 signer.
"""
import base58
import nacl.signing
import pytest
from hypothesis import given, settings, strategies as st

from agent_wallet_sdk.exceptions import KeyNotFoundError, SigningError
from agent_wallet_sdk.identity import get_or_create_wallet
from agent_wallet_sdk.signer import sign_message, verify_signature
from agent_wallet_sdk.signer.local import LocalSigner
from conftest import RFC_ADDRESS, RFC_EMPTY_MESSAGE_SIGNATURE, RFC_PUBLIC_KEY, RFC_SEED

RFC_SIGNER = LocalSigner(RFC_SEED + RFC_PUBLIC_KEY)


def test_rfc8032_test_vector():
    """The empty message signature matches RFC 8032 TEST 1"""
    assert RFC_SIGNER.public_key == RFC_PUBLIC_KEY
    assert RFC_SIGNER.sign(b"") == RFC_EMPTY_MESSAGE_SIGNATURE


def test_seed_only_key_is_accepted():
    signer = LocalSigner(RFC_SEED)
    assert signer.address == RFC_ADDRESS
    assert signer.sign(b"") == RFC_EMPTY_MESSAGE_SIGNATURE


def test_mismatched_public_half_is_rejected():
    with pytest.raises(ValueError, match="does not match"):
        LocalSigner(RFC_SEED + bytes(32))


def test_wrong_key_length_is_rejected():
    with pytest.raises(ValueError, match="32 or 64 bytes"):
        LocalSigner(b"short")


def test_repr_hides_secret():
    assert "address=" in repr(RFC_SIGNER)
    assert RFC_SEED.hex() not in repr(RFC_SIGNER)


def test_sign_challenge_matches_pynacl():
    """Base58 challenge signing agrees with libsodium's detached signature"""
    message = base58.b58decode("MSGB58")
    expected = nacl.signing.SigningKey(RFC_SEED).sign(message).signature

    signature = RFC_SIGNER.sign_challenge("MSGB58")

    assert base58.b58decode(signature) == expected
    assert verify_signature(RFC_PUBLIC_KEY, message, base58.b58decode(signature))


@pytest.mark.parametrize("challenge", ["", "0OIl", "not base58!"])
def test_sign_challenge_rejects_malformed_input(challenge):
    with pytest.raises(SigningError):
        RFC_SIGNER.sign_challenge(challenge)


def test_verify_rejects_tampered_signature():
    signature = bytearray(RFC_SIGNER.sign(b"payload"))
    signature[0] ^= 0xFF
    assert not RFC_SIGNER.verify(b"payload", bytes(signature))
    assert not verify_signature(RFC_PUBLIC_KEY, b"payload", b"too short")


@settings(max_examples=50)
@given(message=st.binary(max_size=512))
def test_signatures_are_deterministic_and_verify(message):
    first = RFC_SIGNER.sign(message)
    second = RFC_SIGNER.sign(message)

    assert first == second
    assert len(first) == 64
    assert RFC_SIGNER.verify(message, first)


@settings(max_examples=50)
@given(a=st.binary(max_size=128), b=st.binary(max_size=128))
def test_different_messages_have_different_signatures(a, b):
    if a == b:
        return
    assert RFC_SIGNER.sign(a) != RFC_SIGNER.sign(b)


def test_sign_message_uses_stored_key(store_path):
    identity = get_or_create_wallet("agent-1")

    signature = sign_message("agent-1", b"hello")

    assert verify_signature(identity.signer().public_key, b"hello", signature)


def test_sign_message_without_identity_raises(store_path):
    with pytest.raises(KeyNotFoundError) as excinfo:
        sign_message("ghost", b"hello")
    assert excinfo.value.agent_id == "ghost"
