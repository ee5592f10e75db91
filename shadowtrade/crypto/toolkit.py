"""
ShadowTrade Encryption Toolkit Boundary

The protocol never encrypts or decrypts. It only checks two kinds of
evidence produced outside it:

- input proofs binding a ciphertext handle to the registering account and
  the protocol contract
- decryption proofs binding a delivered plaintext to a ciphertext handle

LocalToolkit is a self-contained implementation of both sides, built on
pycryptodome (AES-GCM for the ciphertexts, HMAC-SHA256 for the proofs).
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from Crypto.Cipher import AES
from Crypto.Hash import HMAC, SHA256, SHA3_256
from Crypto.Random import get_random_bytes

from shadowtrade.constants import (
    DECRYPTION_PROOF_TAG,
    GCM_NONCE_SIZE,
    INPUT_PROOF_TAG,
    TOOLKIT_KEY_SIZE,
)
from shadowtrade.core.types import Address, CiphertextHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncryptedInput:
    """Client-side encryption output submitted at registration."""
    handle: CiphertextHandle
    input_proof: bytes


@dataclass(frozen=True)
class DecryptionResult:
    """Plaintext delivered by the decryption oracle, with its proof."""
    handle: CiphertextHandle
    plaintext: Address
    proof: bytes


class EncryptionToolkit(ABC):
    """Verification side of the external encryption toolkit."""

    @abstractmethod
    def verify_input_proof(
        self,
        handle: CiphertextHandle,
        input_proof: bytes,
        account: Address,
        contract: Address
    ) -> bool:
        ...

    @abstractmethod
    def verify_decryption_proof(
        self,
        handle: CiphertextHandle,
        plaintext: Address,
        proof: bytes
    ) -> bool:
        ...


class LocalToolkit(EncryptionToolkit):
    """
    Key-holding toolkit for development networks and tests.

    One master key derives an encryption key and a proof key. Ciphertexts
    stay inside the toolkit; callers only ever see handles.
    """

    def __init__(self, master_key: Optional[bytes] = None):
        if master_key is None:
            master_key = get_random_bytes(TOOLKIT_KEY_SIZE)
        if len(master_key) != TOOLKIT_KEY_SIZE:
            raise ValueError(f"Toolkit key must be {TOOLKIT_KEY_SIZE} bytes, got {len(master_key)}")

        self._master_key = master_key
        self._enc_key = HMAC.new(master_key, b"encryption", digestmod=SHA256).digest()
        self._proof_key = HMAC.new(master_key, b"proofs", digestmod=SHA256).digest()
        self._ciphertexts: Dict[CiphertextHandle, bytes] = {}

    @property
    def master_key(self) -> bytes:
        return self._master_key

    def __repr__(self) -> str:
        return f"LocalToolkit(ciphertexts={len(self._ciphertexts)}, key=<redacted>)"

    # =========================================================================
    # Client side
    # =========================================================================

    def encrypt_address(
        self,
        plaintext: Address,
        account: Address,
        contract: Address
    ) -> EncryptedInput:
        """
        Encrypt an address for registration by account with contract.

        Returns:
            Handle and an input proof valid only for (account, contract)
        """
        nonce = get_random_bytes(GCM_NONCE_SIZE)
        cipher = AES.new(self._enc_key, AES.MODE_GCM, nonce=nonce)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext.data)

        blob = nonce + tag + ciphertext
        handle = CiphertextHandle(SHA3_256.new(blob).digest())
        self._ciphertexts[handle] = blob

        proof = self._input_mac(handle, account, contract).digest()
        return EncryptedInput(handle=handle, input_proof=proof)

    # =========================================================================
    # Oracle side
    # =========================================================================

    def decrypt(self, handle: CiphertextHandle) -> DecryptionResult:
        """
        Decrypt a handle and sign the result.

        Raises:
            KeyError: handle unknown to this toolkit
            ValueError: stored ciphertext failed authentication
        """
        blob = self._ciphertexts[handle]
        nonce = blob[:GCM_NONCE_SIZE]
        tag = blob[GCM_NONCE_SIZE:GCM_NONCE_SIZE + 16]
        ciphertext = blob[GCM_NONCE_SIZE + 16:]

        cipher = AES.new(self._enc_key, AES.MODE_GCM, nonce=nonce)
        plaintext = Address(cipher.decrypt_and_verify(ciphertext, tag))

        return DecryptionResult(
            handle=handle,
            plaintext=plaintext,
            proof=self.sign_decryption(handle, plaintext),
        )

    def sign_decryption(self, handle: CiphertextHandle, plaintext: Address) -> bytes:
        return self._decryption_mac(handle, plaintext).digest()

    def knows(self, handle: CiphertextHandle) -> bool:
        return handle in self._ciphertexts

    def export_ciphertexts(self) -> List[Tuple[CiphertextHandle, bytes]]:
        return list(self._ciphertexts.items())

    def load_ciphertexts(self, items: List[Tuple[CiphertextHandle, bytes]]) -> None:
        """Restore stored ciphertexts; each must still match its handle."""
        for handle, blob in items:
            if SHA3_256.new(blob).digest() != handle.data:
                raise ValueError(f"Stored ciphertext does not match handle {handle.short()}")
            self._ciphertexts[handle] = blob

    # =========================================================================
    # Verification side
    # =========================================================================

    def verify_input_proof(
        self,
        handle: CiphertextHandle,
        input_proof: bytes,
        account: Address,
        contract: Address
    ) -> bool:
        try:
            self._input_mac(handle, account, contract).verify(input_proof)
            return True
        except ValueError:
            logger.debug(f"Input proof mismatch for handle {handle.short()}")
            return False

    def verify_decryption_proof(
        self,
        handle: CiphertextHandle,
        plaintext: Address,
        proof: bytes
    ) -> bool:
        try:
            self._decryption_mac(handle, plaintext).verify(proof)
            return True
        except ValueError:
            logger.debug(f"Decryption proof mismatch for handle {handle.short()}")
            return False

    def _input_mac(self, handle: CiphertextHandle, account: Address, contract: Address) -> HMAC.HMAC:
        mac = HMAC.new(self._proof_key, digestmod=SHA256)
        mac.update(INPUT_PROOF_TAG + handle.data + account.data + contract.data)
        return mac

    def _decryption_mac(self, handle: CiphertextHandle, plaintext: Address) -> HMAC.HMAC:
        mac = HMAC.new(self._proof_key, digestmod=SHA256)
        mac.update(DECRYPTION_PROOF_TAG + handle.data + plaintext.data)
        return mac
