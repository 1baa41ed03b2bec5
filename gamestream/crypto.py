"""AES-128 message encryption in CBC and GCM modes over a reusable context."""

from __future__ import annotations

import enum
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

BLOCK_SIZE = 16
KEY_LENGTH = 16
MAX_TAG_LENGTH = 16


class CryptoError(Exception):
    """An encryption or decryption operation could not be completed."""


class Algorithm(enum.IntEnum):
    """Cipher algorithms a context can run."""

    AES_CBC = 1
    AES_GCM = 2


class CipherFlag(enum.IntFlag):
    """Options for a single encrypt or decrypt call."""

    NONE = 0
    RESET_IV = 0x01
    FINISH = 0x02
    PAD_TO_BLOCK_SIZE = 0x04


def round_to_pkcs7_padded_len(length: int) -> int:
    """Round ``length`` up to a whole number of AES blocks."""
    return ((length + BLOCK_SIZE - 1) // BLOCK_SIZE) * BLOCK_SIZE


def pad_pkcs7(data: bytes) -> bytes:
    """Pad ``data`` up to the next block boundary with PKCS#7 padding bytes.

    Data that already ends on a block boundary is returned unchanged, so
    every message fills whole blocks without an extra padding block.
    """
    data = bytes(data)
    padded_length = round_to_pkcs7_padded_len(len(data))
    padding_byte = BLOCK_SIZE - (len(data) % BLOCK_SIZE)
    return data + bytes([padding_byte]) * (padded_length - len(data))


def _pkcs7_final_block(remainder: bytes) -> bytes:
    padding_byte = BLOCK_SIZE - len(remainder)
    return remainder + bytes([padding_byte]) * padding_byte


def _strip_pkcs7(data: bytes) -> bytes:
    if not data or len(data) % BLOCK_SIZE:
        raise CryptoError("decrypted data is not a whole number of blocks")
    count = data[-1]
    if not 1 <= count <= BLOCK_SIZE or data[-count:] != bytes([count]) * count:
        raise CryptoError("bad PKCS#7 padding")
    return data[:-count]


def generate_random_data(length: int) -> bytes:
    """Return ``length`` cryptographically secure random bytes."""
    if length < 0:
        raise ValueError("length must not be negative")
    return secrets.token_bytes(length)


class CryptoContext:
    """Holds cipher state across messages of one stream.

    A context serves one algorithm in one direction. The key is taken when
    the context is first used; changing it later is not supported (GCM picks
    up a new key only together with ``CipherFlag.RESET_IV``).

    For GCM every call is a complete message and the IV may change freely.
    ``encrypt`` returns the tag followed by the ciphertext; ``decrypt`` takes
    the ciphertext and the tag separately.

    For CBC the chain carries on from call to call until ``RESET_IV`` starts
    it again from a new IV. Partial blocks are held until more data arrives;
    ``FINISH`` ends the stream, applying PKCS#7 padding on encryption and
    removing it on decryption. Without ``FINISH``, decryption holds back the
    last decrypted block, since it may turn out to be padding.
    """

    def __init__(self) -> None:
        self._closed = False
        self._algorithm: Optional[Algorithm] = None
        self._direction: Optional[str] = None
        self._key: Optional[bytes] = None
        self._stream = None
        self._pending = b""
        self._held = b""

    def _prepare(self, algorithm, key: bytes, direction: str) -> Algorithm:
        if self._closed:
            raise CryptoError("crypto context is closed")
        try:
            algorithm = Algorithm(algorithm)
        except ValueError:
            raise CryptoError(f"unknown algorithm: {algorithm!r}") from None
        if len(key) != KEY_LENGTH:
            raise CryptoError(f"key must be {KEY_LENGTH} bytes, got {len(key)}")
        if self._algorithm is None:
            self._algorithm = algorithm
            self._direction = direction
            self._key = bytes(key)
        elif self._algorithm is not algorithm:
            raise CryptoError("context is already in use with another algorithm")
        elif self._direction != direction:
            raise CryptoError(f"context is already in use to {self._direction}")
        return algorithm

    def _cbc_stream(self, key: bytes, iv: bytes, flags: CipherFlag, encrypt: bool):
        if len(iv) != BLOCK_SIZE:
            raise CryptoError(f"CBC IV must be {BLOCK_SIZE} bytes, got {len(iv)}")
        if self._stream is None or flags & CipherFlag.RESET_IV:
            if self._stream is None:
                self._key = bytes(key)
            cipher = Cipher(algorithms.AES(self._key), modes.CBC(bytes(iv)))
            self._stream = cipher.encryptor() if encrypt else cipher.decryptor()
            self._pending = b""
            self._held = b""
        return self._stream

    def _end_stream(self) -> None:
        self._stream = None
        self._pending = b""
        self._held = b""

    def _gcm_cipher(self, iv: bytes, tag: Optional[bytes] = None) -> Cipher:
        try:
            if tag is None:
                mode = modes.GCM(bytes(iv))
            else:
                mode = modes.GCM(bytes(iv), bytes(tag), min_tag_length=len(tag))
            return Cipher(algorithms.AES(self._key), mode)
        except ValueError as exc:
            raise CryptoError(str(exc)) from exc

    def encrypt(
        self,
        algorithm,
        key: bytes,
        iv: bytes,
        data: bytes,
        flags=CipherFlag.NONE,
        tag_length: int = MAX_TAG_LENGTH,
    ) -> bytes:
        """Encrypt ``data`` and return the output of this call."""
        algorithm = self._prepare(algorithm, key, "encrypt")
        flags = CipherFlag(flags)

        if algorithm is Algorithm.AES_GCM:
            if not 0 < tag_length <= MAX_TAG_LENGTH:
                raise CryptoError(f"GCM tag length must be 1 to {MAX_TAG_LENGTH}")
            if flags & CipherFlag.RESET_IV:
                self._key = bytes(key)
            encryptor = self._gcm_cipher(iv).encryptor()
            ciphertext = encryptor.update(bytes(data)) + encryptor.finalize()
            return encryptor.tag[:tag_length] + ciphertext

        stream = self._cbc_stream(key, iv, flags, encrypt=True)
        if flags & CipherFlag.PAD_TO_BLOCK_SIZE:
            data = pad_pkcs7(data)
        buffered = self._pending + bytes(data)
        whole = len(buffered) - len(buffered) % BLOCK_SIZE
        output = stream.update(buffered[:whole])
        self._pending = buffered[whole:]
        if flags & CipherFlag.FINISH:
            output += stream.update(_pkcs7_final_block(self._pending))
            output += stream.finalize()
            self._end_stream()
        return output

    def decrypt(
        self,
        algorithm,
        key: bytes,
        iv: bytes,
        data: bytes,
        flags=CipherFlag.NONE,
        tag: Optional[bytes] = None,
    ) -> bytes:
        """Decrypt ``data`` and return the plaintext released by this call."""
        algorithm = self._prepare(algorithm, key, "decrypt")
        flags = CipherFlag(flags)

        if algorithm is Algorithm.AES_GCM:
            if not tag:
                raise CryptoError("GCM decryption needs a tag")
            if len(tag) > MAX_TAG_LENGTH:
                raise CryptoError(f"GCM tag must be at most {MAX_TAG_LENGTH} bytes")
            if flags & CipherFlag.RESET_IV:
                self._key = bytes(key)
            decryptor = self._gcm_cipher(iv, tag).decryptor()
            try:
                return decryptor.update(bytes(data)) + decryptor.finalize()
            except InvalidTag:
                raise CryptoError("GCM tag does not match") from None

        stream = self._cbc_stream(key, iv, flags, encrypt=False)
        buffered = self._pending + bytes(data)
        whole = len(buffered) - len(buffered) % BLOCK_SIZE
        plaintext = self._held + stream.update(buffered[:whole])
        self._pending = buffered[whole:]

        if flags & CipherFlag.FINISH:
            leftover = self._pending
            stream.finalize()
            self._end_stream()
            if leftover:
                raise CryptoError("ciphertext is not a whole number of blocks")
            return _strip_pkcs7(plaintext)

        self._held = plaintext[-BLOCK_SIZE:]
        return plaintext[:-BLOCK_SIZE]

    def close(self) -> None:
        """Release the cipher state; the context cannot be used afterwards."""
        self._closed = True
        self._stream = None
        self._key = None
        self._pending = b""
        self._held = b""

    def __enter__(self) -> "CryptoContext":
        return self

    def __exit__(self, *args) -> None:
        self.close()