import base64
import binascii
import os
from collections import namedtuple

from cryptography.exceptions import InvalidKey, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import DecryptionError, KeyCodecError

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537
# OAEP overhead is 2 * hash length + 2
RSA_MAX_PLAINTEXT = RSA_KEY_SIZE // 8 - 2 * 32 - 2

SYMMETRIC_KEY_SIZE = 32
IV_SIZE = 16

KeyPair = namedtuple("KeyPair", ["public_key", "private_key"])


class SymmetricKey:
    """Raw AES-256 key material, kept apart from RSA key handles."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes):
        if not isinstance(raw, bytes) or len(raw) != SYMMETRIC_KEY_SIZE:
            raise KeyCodecError(f"Symmetric key must be {SYMMETRIC_KEY_SIZE} bytes")
        self._raw = raw

    @property
    def raw(self) -> bytes:
        return self._raw

    def __eq__(self, other):
        return isinstance(other, SymmetricKey) and other._raw == self._raw

    def __hash__(self):
        return hash(self._raw)

    def __repr__(self):
        return "SymmetricKey(<hidden>)"


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(text, error_cls):
    if not isinstance(text, str):
        raise error_cls(f"Expected base64 text, got {type(text).__name__}")
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise error_cls(f"Invalid base64 input: {e}")


def _oaep():
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


class KeyCodec:
    BLOCK_SIZE = 16

    # RSA keys

    @staticmethod
    def generate_rsa_key_pair() -> KeyPair:
        try:
            private_key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT, key_size=RSA_KEY_SIZE
            )
        except (ValueError, UnsupportedAlgorithm) as e:
            raise KeyCodecError(f"RSA key generation failed: {e}")
        return KeyPair(private_key.public_key(), private_key)

    @staticmethod
    def export_pub_key(key) -> str:
        if not isinstance(key, rsa.RSAPublicKey):
            raise KeyCodecError("export_pub_key expects an RSA public key")
        der = key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return _b64encode(der)

    @staticmethod
    def export_prv_key(key):
        if key is None:
            return None
        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyCodecError("export_prv_key expects an RSA private key")
        der = key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return _b64encode(der)

    @staticmethod
    def import_pub_key(text: str):
        der = _b64decode(text, KeyCodecError)
        try:
            key = serialization.load_der_public_key(der)
        except (ValueError, UnsupportedAlgorithm) as e:
            raise KeyCodecError(f"Not a public key: {e}")
        if not isinstance(key, rsa.RSAPublicKey):
            raise KeyCodecError("Public key is not an RSA key")
        return key

    @staticmethod
    def import_prv_key(text: str):
        der = _b64decode(text, KeyCodecError)
        try:
            key = serialization.load_der_private_key(der, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise KeyCodecError(f"Not a private key: {e}")
        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyCodecError("Private key is not an RSA key")
        return key

    @staticmethod
    def rsa_encrypt(b64_data: str, public_key) -> str:
        """Wraps base64-encoded bytes under an RSA public key (object or exported text)."""
        if isinstance(public_key, str):
            public_key = KeyCodec.import_pub_key(public_key)
        data = _b64decode(b64_data, KeyCodecError)
        if len(data) > RSA_MAX_PLAINTEXT:
            raise KeyCodecError(
                f"RSA plaintext is {len(data)} bytes, limit is {RSA_MAX_PLAINTEXT}"
            )
        return _b64encode(public_key.encrypt(data, _oaep()))

    @staticmethod
    def rsa_decrypt(data: str, private_key) -> str:
        raw = _b64decode(data, DecryptionError)
        try:
            plain = private_key.decrypt(raw, _oaep())
        except ValueError as e:
            raise DecryptionError(f"RSA decryption failed: {e}")
        return _b64encode(plain)

    # Symmetric keys

    @staticmethod
    def generate_symmetric_key() -> SymmetricKey:
        return SymmetricKey(os.urandom(SYMMETRIC_KEY_SIZE))

    @staticmethod
    def export_sym_key(key: SymmetricKey) -> str:
        if not isinstance(key, SymmetricKey):
            raise KeyCodecError("export_sym_key expects a SymmetricKey")
        return _b64encode(key.raw)

    @staticmethod
    def import_sym_key(text: str) -> SymmetricKey:
        return SymmetricKey(_b64decode(text, KeyCodecError))

    # Pads the input data (PKCS7)
    @staticmethod
    def pad(data: bytes) -> bytes:
        pad_len = KeyCodec.BLOCK_SIZE - (len(data) % KeyCodec.BLOCK_SIZE)
        return data + bytes([pad_len] * pad_len)

    # Unpads the input data, rejecting anything that is not valid PKCS7
    @staticmethod
    def unpad(data: bytes) -> bytes:
        if not data or len(data) % KeyCodec.BLOCK_SIZE:
            raise DecryptionError("Ciphertext is not a whole number of blocks")
        pad_len = data[-1]
        if pad_len < 1 or pad_len > KeyCodec.BLOCK_SIZE or data[-pad_len:] != bytes([pad_len] * pad_len):
            raise DecryptionError("Bad padding")
        return data[:-pad_len]

    @staticmethod
    def sym_encrypt(key: SymmetricKey, data: str) -> str:
        """AES-256-CBC with a fresh IV prepended to the ciphertext."""
        if isinstance(key, str):
            key = KeyCodec.import_sym_key(key)
        iv = os.urandom(IV_SIZE)
        enc = Cipher(algorithms.AES(key.raw), modes.CBC(iv)).encryptor()
        padded = KeyCodec.pad(data.encode("utf-8"))
        return _b64encode(iv + enc.update(padded) + enc.finalize())

    @staticmethod
    def sym_decrypt(key, encrypted_data: str) -> str:
        if isinstance(key, str):
            key = KeyCodec.import_sym_key(key)
        raw = _b64decode(encrypted_data, DecryptionError)
        if len(raw) < IV_SIZE + KeyCodec.BLOCK_SIZE:
            raise DecryptionError("Ciphertext too short")
        iv, body = raw[:IV_SIZE], raw[IV_SIZE:]
        if len(body) % KeyCodec.BLOCK_SIZE:
            raise DecryptionError("Ciphertext is not a whole number of blocks")
        dec = Cipher(algorithms.AES(key.raw), modes.CBC(iv)).decryptor()
        try:
            padded = dec.update(body) + dec.finalize()
        except (ValueError, InvalidKey) as e:
            raise DecryptionError(f"AES decryption failed: {e}")
        try:
            return KeyCodec.unpad(padded).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError(f"Decrypted payload is not UTF-8: {e}")

    @staticmethod
    def self_test(message="Test message"):
        """Round-trips RSA and AES on a normal and an empty message."""
        pair = KeyCodec.generate_rsa_key_pair()
        pub_text = KeyCodec.export_pub_key(pair.public_key)
        sym_key = KeyCodec.generate_symmetric_key()
        report = {}
        for name, original in (("", message), ("Empty", "")):
            b64 = _b64encode(original.encode("utf-8"))
            wrapped = KeyCodec.rsa_encrypt(b64, pub_text)
            rsa_plain = base64.b64decode(KeyCodec.rsa_decrypt(wrapped, pair.private_key)).decode("utf-8")
            sym_plain = KeyCodec.sym_decrypt(
                KeyCodec.export_sym_key(sym_key), KeyCodec.sym_encrypt(sym_key, original)
            )
            report[f"rsa{name}Test"] = {
                "original": original, "decrypted": rsa_plain, "success": rsa_plain == original
            }
            report[f"sym{name}Test"] = {
                "original": original, "decrypted": sym_plain, "success": sym_plain == original
            }
        return report
