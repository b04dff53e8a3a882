"""Tests for encrypted credential storage."""

import base64

import pytest

from khepri_gateway.intervals import Credentials
from khepri_gateway.supabase import SupabaseError
from khepri_gateway.vault import IV_BYTES, CredentialDecryptionError, CredentialVault, CredentialVaultError

from conftest import ATHLETE_ID, ENCRYPTION_KEY


def test_encrypt_prepends_fresh_iv(vault):
    first = vault.encrypt("secret-key")
    second = vault.encrypt("secret-key")

    assert first != second
    assert base64.b64decode(first)[:IV_BYTES] != base64.b64decode(second)[:IV_BYTES]
    assert vault.decrypt(first) == "secret-key"
    assert "secret-key" not in first


def test_tampered_ciphertext_fails(vault):
    raw = bytearray(base64.b64decode(vault.encrypt("secret-key")))
    raw[-1] ^= 0x01
    with pytest.raises(CredentialDecryptionError):
        vault.decrypt(base64.b64encode(bytes(raw)).decode())


def test_wrong_key_fails(store, vault):
    encoded = vault.encrypt("secret-key")
    other = CredentialVault(store, "f" * 64)
    with pytest.raises(CredentialDecryptionError):
        other.decrypt(encoded)


@pytest.mark.parametrize("encoded", ["not base64!", base64.b64encode(b"short").decode()])
def test_malformed_ciphertext_fails(vault, encoded):
    with pytest.raises(CredentialDecryptionError):
        vault.decrypt(encoded)


@pytest.mark.parametrize("key", ["", "abc", "z" * 64])
def test_bad_key_configuration(store, key):
    with pytest.raises(CredentialVaultError):
        CredentialVault(store, key).encrypt("secret-key")


@pytest.mark.asyncio
async def test_resolve_without_row_is_not_configured(vault):
    assert await vault.resolve(ATHLETE_ID) is None


@pytest.mark.asyncio
async def test_resolve_decrypts_stored_credentials(vault, connected):
    credentials = await vault.resolve(ATHLETE_ID)
    assert credentials == connected


@pytest.mark.asyncio
async def test_resolve_does_not_treat_corruption_as_missing(store, vault, connected):
    store.tables["intervals_credentials"][0]["encrypted_api_key"] = CredentialVault(store, "e" * 64).encrypt("x")
    with pytest.raises(CredentialDecryptionError):
        await vault.resolve(ATHLETE_ID)


@pytest.mark.asyncio
async def test_resolve_propagates_store_errors(store, vault):
    store.fail_with = SupabaseError("permission denied", 403, "42501")
    with pytest.raises(SupabaseError) as exc_info:
        await vault.resolve(ATHLETE_ID)
    assert "Failed to fetch credentials" in exc_info.value.message


@pytest.mark.asyncio
async def test_save_status_and_remove(store, vault, connected):
    status = await vault.status(ATHLETE_ID)
    assert status["connected"] is True
    assert status["intervals_athlete_id"] == "i12345"
    assert "api_key" not in status and "encrypted_api_key" not in status

    await vault.remove(ATHLETE_ID)
    assert await vault.status(ATHLETE_ID) == {"connected": False}


@pytest.mark.asyncio
async def test_save_encrypts_before_storing(store):
    vault = CredentialVault(store, ENCRYPTION_KEY)
    await vault.save(ATHLETE_ID, Credentials(external_athlete_id="i999", api_key="new-key"))

    row = store.tables["intervals_credentials"][0]
    assert row["intervals_athlete_id"] == "i999"
    assert row["encrypted_api_key"] != "new-key"
    assert vault.decrypt(row["encrypted_api_key"]) == "new-key"
