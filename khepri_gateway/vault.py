"""Encrypted-at-rest storage of per-athlete Intervals.icu API keys."""

import base64
import binascii
import logging
import os
from datetime import datetime, timezone

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from khepri_gateway.intervals import Credentials
from khepri_gateway.supabase import RowNotFoundError, SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

CREDENTIALS_TABLE = "intervals_credentials"
IV_BYTES = 12  # 96-bit nonce, fresh per encryption
KEY_HEX_LENGTH = 64


class CredentialVaultError(Exception):
    pass


class CredentialDecryptionError(CredentialVaultError):
    pass


def _load_key(key_hex: str) -> bytes:
    if not key_hex or len(key_hex) != KEY_HEX_LENGTH:
        raise CredentialVaultError("Invalid encryption key configuration")
    try:
        return bytes.fromhex(key_hex)
    except ValueError as e:
        raise CredentialVaultError("Invalid encryption key configuration") from e


class CredentialVault:
    """Resolves and stores Intervals.icu credentials for one request.

    The AES-GCM key is injected by the caller; it is only checked when a
    ciphertext actually has to be produced or opened, so athletes without
    stored credentials are unaffected by a missing key.
    """

    def __init__(self, store: SupabaseClient, key_hex: str):
        self.store = store
        self._key_hex = key_hex

    def _cipher(self) -> AESGCM:
        return AESGCM(_load_key(self._key_hex))

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_BYTES)
        ciphertext = self._cipher().encrypt(iv, plaintext.encode(), None)
        return base64.b64encode(iv + ciphertext).decode()

    def decrypt(self, encoded: str) -> str:
        cipher = self._cipher()
        try:
            combined = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CredentialDecryptionError("Stored credentials are not valid base64") from e
        if len(combined) <= IV_BYTES:
            raise CredentialDecryptionError("Stored credentials are truncated")
        try:
            plaintext = cipher.decrypt(combined[:IV_BYTES], combined[IV_BYTES:], None)
        except InvalidTag as e:
            raise CredentialDecryptionError("Stored credentials could not be decrypted") from e
        return plaintext.decode()

    async def resolve(self, athlete_id: str) -> Credentials | None:
        """Decrypted credentials, or None when the athlete never connected.

        Store errors other than "no row" and decryption failures propagate.
        """
        try:
            row = await self.store.select_one(
                CREDENTIALS_TABLE,
                "intervals_athlete_id,encrypted_api_key",
                {"athlete_id": athlete_id},
            )
        except RowNotFoundError:
            return None
        except SupabaseError as e:
            raise SupabaseError(f"Failed to fetch credentials: {e.message}", e.status_code, e.code) from e

        if not row:
            return None

        api_key = self.decrypt(row["encrypted_api_key"])
        return Credentials(external_athlete_id=row["intervals_athlete_id"], api_key=api_key)

    # --- Credential management ---

    async def status(self, athlete_id: str) -> dict:
        try:
            row = await self.store.select_one(
                CREDENTIALS_TABLE,
                "intervals_athlete_id,created_at,updated_at",
                {"athlete_id": athlete_id},
            )
        except RowNotFoundError:
            return {"connected": False}
        return {
            "connected": True,
            "intervals_athlete_id": row["intervals_athlete_id"],
            "connected_at": row.get("created_at"),
            "updated_at": row.get("updated_at"),
        }

    async def save(self, athlete_id: str, credentials: Credentials) -> None:
        await self.store.upsert(
            CREDENTIALS_TABLE,
            {
                "athlete_id": athlete_id,
                "intervals_athlete_id": credentials.external_athlete_id,
                "encrypted_api_key": self.encrypt(credentials.api_key),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="athlete_id",
        )
        logger.info(f"Stored Intervals.icu credentials for athlete {athlete_id}")

    async def remove(self, athlete_id: str) -> None:
        await self.store.delete(CREDENTIALS_TABLE, {"athlete_id": athlete_id})
        logger.info(f"Removed Intervals.icu credentials for athlete {athlete_id}")
