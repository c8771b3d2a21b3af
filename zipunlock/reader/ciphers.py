"""
zipunlock Ciphers
Entry decrypters for the two password schemes found in zip archives:
traditional PKWARE encryption ("ZipCrypto") and WinZip AES.
"""
from typing import Sequence, Union

from cryptography.hazmat.primitives import constant_time, hashes, hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import AuthenticationFailure, InitializationFailure


def _build_crc_table():
    table = []
    for c in range(256):
        for _ in range(8):
            c = (c >> 1) ^ 0xEDB88320 if c & 1 else c >> 1
        table.append(c)
    return table


CRC_TABLE = _build_crc_table()


class SecretPassword:
    """
    Mutable holder for a password.

    Kept as a bytearray so it can be wiped once the archive is done,
    instead of leaving immutable copies around.
    """

    def __init__(self, password: Union[str, bytes, bytearray, Sequence[str]]):
        if isinstance(password, SecretPassword):
            self._value = bytearray(password.value)
        elif isinstance(password, (bytes, bytearray, memoryview)):
            self._value = bytearray(password)
        elif isinstance(password, str):
            self._value = bytearray(password.encode('utf-8'))
        elif password is None:
            self._value = bytearray()
        else:
            self._value = bytearray(''.join(password).encode('utf-8'))

    @property
    def value(self) -> bytearray:
        return self._value

    def clear(self):
        for i in range(len(self._value)):
            self._value[i] = 0
        self._value = bytearray()

    def __bool__(self):
        return len(self._value) > 0

    def __repr__(self):
        return "SecretPassword('***')"


class ZipCryptoDecrypter:
    """Traditional PKWARE stream cipher, three 32-bit keys seeded by the password."""

    HEADER_SIZE = 12
    # No trailing authentication code, integrity relies on the CRC
    AUTH_CODE_SIZE = 0

    def __init__(self, password: SecretPassword):
        self._keys = (0x12345678, 0x23456789, 0x34567890)
        self._absorb(password.value)

    def _absorb(self, data):
        k0, k1, k2 = self._keys
        table = CRC_TABLE
        for c in data:
            k0 = (k0 >> 8) ^ table[(k0 ^ c) & 0xFF]
            k1 = ((k1 + (k0 & 0xFF)) * 134775813 + 1) & 0xFFFFFFFF
            k2 = (k2 >> 8) ^ table[(k2 ^ (k1 >> 24)) & 0xFF]
        self._keys = (k0, k1, k2)

    def decrypt(self, data: bytes) -> bytes:
        k0, k1, k2 = self._keys
        table = CRC_TABLE
        out = bytearray(len(data))
        for i, c in enumerate(data):
            k = k2 | 2
            c ^= ((k * (k ^ 1)) >> 8) & 0xFF
            out[i] = c
            k0 = (k0 >> 8) ^ table[(k0 ^ c) & 0xFF]
            k1 = ((k1 + (k0 & 0xFF)) * 134775813 + 1) & 0xFFFFFFFF
            k2 = (k2 >> 8) ^ table[(k2 ^ (k1 >> 24)) & 0xFF]
        self._keys = (k0, k1, k2)
        return bytes(out)

    def check_header(self, header: bytes, check_byte: int):
        """Decrypt the 12-byte encryption header and compare its last byte."""
        if len(header) != self.HEADER_SIZE:
            raise AuthenticationFailure("Truncated encryption header")
        plain = self.decrypt(header)
        if plain[-1] != check_byte:
            raise AuthenticationFailure("Password check failed")

    def update_mac(self, data: bytes):
        pass

    def verify(self, code: bytes) -> bool:
        return len(code) == self.AUTH_CODE_SIZE


class WinZipAesDecrypter:
    """
    WinZip AES (AE-1 / AE-2).

    Key material comes from PBKDF2-HMAC-SHA1 (1000 rounds) over the salt:
    AES key, HMAC key, then a 2-byte password verifier. Data is AES in CTR
    mode with a little-endian counter starting at 1, authenticated with an
    HMAC-SHA1 over the ciphertext truncated to 10 bytes.
    """

    SALT_SIZES = {1: 8, 2: 12, 3: 16}
    KEY_SIZES = {1: 16, 2: 24, 3: 32}
    VERIFIER_SIZE = 2
    AUTH_CODE_SIZE = 10
    ITERATIONS = 1000
    BLOCK = 16

    def __init__(self, password: SecretPassword, strength: int, salt: bytes, verifier: bytes):
        if strength not in self.KEY_SIZES:
            raise InitializationFailure(f"Unsupported AES strength: {strength}")
        key_size = self.KEY_SIZES[strength]

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA1(),
            length=2 * key_size + self.VERIFIER_SIZE,
            salt=salt,
            iterations=self.ITERATIONS,
        )
        derived = kdf.derive(password.value)
        aes_key = derived[:key_size]
        mac_key = derived[key_size:2 * key_size]
        expected = derived[2 * key_size:]

        if not constant_time.bytes_eq(expected, bytes(verifier)):
            raise AuthenticationFailure("Password check failed")

        self._ecb = Cipher(algorithms.AES(aes_key), modes.ECB()).encryptor()
        self._mac = hmac.HMAC(mac_key, hashes.SHA1())
        self._offset = 0

    @classmethod
    def header_size(cls, strength: int) -> int:
        return cls.SALT_SIZES[strength] + cls.VERIFIER_SIZE

    def _keystream(self, length: int) -> bytes:
        first = self._offset // self.BLOCK
        last = (self._offset + length + self.BLOCK - 1) // self.BLOCK
        counters = b''.join(
            (i + 1).to_bytes(self.BLOCK, 'little') for i in range(first, last)
        )
        stream = self._ecb.update(counters)
        skip = self._offset % self.BLOCK
        return stream[skip:skip + length]

    def decrypt(self, data: bytes) -> bytes:
        n = len(data)
        if not n:
            return b''
        stream = self._keystream(n)
        self._offset += n
        plain = int.from_bytes(data, 'big') ^ int.from_bytes(stream, 'big')
        return plain.to_bytes(n, 'big')

    def update_mac(self, data: bytes):
        self._mac.update(data)

    def verify(self, code: bytes) -> bool:
        digest = self._mac.finalize()[:self.AUTH_CODE_SIZE]
        return constant_time.bytes_eq(digest, bytes(code))


__all__ = [
    "SecretPassword",
    "ZipCryptoDecrypter",
    "WinZipAesDecrypter",
    "CRC_TABLE",
]
