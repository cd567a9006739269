"""Secret vault tests."""

import base64

import pytest

from weephub.core.errors import IntegrityError, VaultKeyError
from weephub.core.vault import (
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    SecretVault,
    decrypt,
    encrypt,
    generate_key,
    load_or_create_key,
)


def test_round_trip_returns_original_plaintext():
    key = generate_key()
    for token in ["abc", "", "ümlaut-tökén", "x" * 4096]:
        assert decrypt(encrypt(token, key), key) == token


def test_blob_layout_is_nonce_tag_ciphertext():
    key = generate_key()
    raw = base64.b64decode(encrypt("secret-token", key))
    assert len(raw) == NONCE_SIZE + TAG_SIZE + len("secret-token")


def test_each_encryption_uses_fresh_nonce():
    key = generate_key()
    first = base64.b64decode(encrypt("same", key))
    second = base64.b64decode(encrypt("same", key))
    assert first[:NONCE_SIZE] != second[:NONCE_SIZE]
    assert first != second


def test_wrong_key_fails_integrity():
    blob = encrypt("secret", generate_key())
    with pytest.raises(IntegrityError):
        decrypt(blob, generate_key())


@pytest.mark.parametrize("position", [0, NONCE_SIZE, NONCE_SIZE + TAG_SIZE])
def test_bit_flip_fails_integrity(position):
    key = generate_key()
    raw = bytearray(base64.b64decode(encrypt("secret", key)))
    raw[position] ^= 0x01
    with pytest.raises(IntegrityError):
        decrypt(base64.b64encode(bytes(raw)).decode(), key)


@pytest.mark.parametrize("blob", ["not base64!!", "", base64.b64encode(b"short").decode()])
def test_malformed_blob_fails_integrity(blob):
    with pytest.raises(IntegrityError):
        decrypt(blob, generate_key())


def test_key_created_once_then_loaded(tmp_path):
    path = tmp_path / "keys" / "vault.key"
    key = load_or_create_key(path)

    assert len(key) == KEY_SIZE
    assert path.read_text() == key.hex()
    assert load_or_create_key(path) == key


def test_invalid_key_file_is_rejected(tmp_path):
    path = tmp_path / "vault.key"
    path.write_text("zz-not-hex")
    with pytest.raises(VaultKeyError):
        load_or_create_key(path)

    path.write_text("ab" * 8)
    with pytest.raises(VaultKeyError):
        load_or_create_key(path)


def test_vault_from_file_decrypts_across_instances(tmp_path):
    path = tmp_path / "vault.key"
    blob = SecretVault.from_file(path).encrypt("token-123")
    assert SecretVault.from_file(path).decrypt(blob) == "token-123"
