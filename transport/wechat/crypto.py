"""
WeChat Message Envelope Codec (AES-256-CBC)

PURE BYTES IN, BYTES OUT - NO I/O, NO CONFIG LOOKUPS

Implements the Official Account "secure mode" framing:

    random(16) || msg_len(4, big-endian) || msg || app_id

padded with PKCS#7 to a 32-byte boundary and encrypted with AES-256-CBC.
The IV is the first 16 bytes of the key. That is the platform's scheme,
not a choice made here.

ref: https://developers.weixin.qq.com/doc/oplatform/Third-party_Platforms/2.0/api/Before_Develop/Technical_Preparation.html
"""

import base64
import binascii
import os
import struct
from xml.parsers.expat import ExpatError

import xmltodict
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

AES_BLOCK_SIZE = 16
PAD_BLOCK_SIZE = 32
RANDOM_PREFIX_LENGTH = 16
ENCODING_AES_KEY_LENGTH = 43
_REQUIRED_KEY_LENGTH = 32
_HEADER_LENGTH = RANDOM_PREFIX_LENGTH + 4


class CryptoError(Exception):
    """Envelope could not be encrypted or decrypted."""
    pass


class AESKeyError(CryptoError):
    """The configured EncodingAESKey is unusable (configuration error)."""
    pass


class AppIdMismatch(CryptoError):
    """Decrypted envelope names a different AppID than the configured one."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"AppID mismatch: expected {expected!r}, got {actual!r}")
        self.expected = expected
        self.actual = actual


def decode_aes_key(encoding_aes_key: str) -> bytes:
    """
    Decode the 43-character EncodingAESKey into the 32-byte AES key.

    The platform strips the single '=' pad from the base64 form,
    so it is appended back before decoding.

    Raises:
        AESKeyError: Key is not 43 characters or does not decode to 32 bytes
    """
    if not encoding_aes_key or len(encoding_aes_key) != ENCODING_AES_KEY_LENGTH:
        raise AESKeyError(
            f"EncodingAESKey must be {ENCODING_AES_KEY_LENGTH} characters"
        )

    try:
        key = base64.b64decode(encoding_aes_key + "=", validate=True)
    except (binascii.Error, ValueError) as e:
        raise AESKeyError(f"EncodingAESKey is not valid base64: {e}")

    if len(key) != _REQUIRED_KEY_LENGTH:
        raise AESKeyError(
            f"EncodingAESKey decodes to {len(key)} bytes, expected {_REQUIRED_KEY_LENGTH}"
        )
    return key


def pkcs7_pad(data: bytes, block_size: int = PAD_BLOCK_SIZE) -> bytes:
    """PKCS#7 pad to a multiple of block_size (always adds 1..block_size bytes)."""
    pad_len = block_size - (len(data) % block_size)
    return data + bytes([pad_len]) * pad_len


def pkcs7_unpad(data: bytes) -> bytes:
    """
    Strip PKCS#7 padding, leniently.

    A trailing byte outside [1, 32] means the buffer is treated as
    unpadded and returned unchanged.
    """
    if not data:
        return data
    pad_len = data[-1]
    if pad_len < 1 or pad_len > PAD_BLOCK_SIZE:
        return data
    return data[:-pad_len]


def _cipher(key: bytes) -> Cipher:
    return Cipher(algorithms.AES(key), modes.CBC(key[:AES_BLOCK_SIZE]))


def encrypt_message(message: str, encoding_aes_key: str, app_id: str) -> str:
    """
    Encrypt a plaintext XML message for the platform.

    A fresh random prefix is generated per call, so identical plaintexts
    never produce identical ciphertexts.

    Args:
        message: Plain XML reply
        encoding_aes_key: 43-character EncodingAESKey
        app_id: Official Account AppID appended to the frame

    Returns:
        Base64-encoded ciphertext

    Raises:
        AESKeyError: Misconfigured key
    """
    key = decode_aes_key(encoding_aes_key)

    msg_bytes = message.encode("utf-8")
    plaintext = b"".join([
        os.urandom(RANDOM_PREFIX_LENGTH),
        struct.pack(">I", len(msg_bytes)),
        msg_bytes,
        app_id.encode("utf-8"),
    ])

    encryptor = _cipher(key).encryptor()
    encrypted = encryptor.update(pkcs7_pad(plaintext)) + encryptor.finalize()
    return base64.b64encode(encrypted).decode("ascii")


def decrypt_message(encrypted: str, encoding_aes_key: str, app_id: str) -> str:
    """
    Decrypt a platform envelope payload and verify its AppID.

    Args:
        encrypted: Base64 payload from the <Encrypt> element
        encoding_aes_key: 43-character EncodingAESKey
        app_id: Expected AppID

    Returns:
        The inner plaintext XML

    Raises:
        AESKeyError: Misconfigured key
        AppIdMismatch: Frame was produced for another AppID
        CryptoError: Corrupt payload (bad base64, bad block length,
            length field out of bounds, invalid UTF-8)
    """
    key = decode_aes_key(encoding_aes_key)

    try:
        ciphertext = base64.b64decode(encrypted, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError(f"Encrypted payload is not valid base64: {e}")

    if not ciphertext or len(ciphertext) % AES_BLOCK_SIZE != 0:
        raise CryptoError(
            f"Ciphertext length {len(ciphertext)} is not a multiple of {AES_BLOCK_SIZE}"
        )

    decryptor = _cipher(key).decryptor()
    decrypted = pkcs7_unpad(decryptor.update(ciphertext) + decryptor.finalize())

    if len(decrypted) < _HEADER_LENGTH:
        raise CryptoError("Decrypted frame is shorter than its header")

    (msg_len,) = struct.unpack(">I", decrypted[RANDOM_PREFIX_LENGTH:_HEADER_LENGTH])
    msg_end = _HEADER_LENGTH + msg_len
    if msg_end > len(decrypted):
        raise CryptoError(
            f"Message length {msg_len} overruns decrypted frame of {len(decrypted)} bytes"
        )

    try:
        message = decrypted[_HEADER_LENGTH:msg_end].decode("utf-8")
        frame_app_id = decrypted[msg_end:].decode("utf-8")
    except UnicodeDecodeError as e:
        raise CryptoError(f"Decrypted frame is not valid UTF-8: {e}")

    if frame_app_id != app_id:
        raise AppIdMismatch(app_id, frame_app_id)

    return message


def extract_encrypted_content(xml: str) -> str:
    """Return the <Encrypt> field of an encrypted envelope, or "" if absent."""
    try:
        parsed = xmltodict.parse(xml)
    except ExpatError:
        return ""
    root = parsed.get("xml") if isinstance(parsed, dict) else None
    if not isinstance(root, dict):
        return ""
    value = root.get("Encrypt")
    return value if isinstance(value, str) else ""


def build_encrypted_reply(encrypted: str, signature: str, timestamp: str, nonce: str) -> str:
    """
    Build the encrypted reply envelope.

    Values go into CDATA unescaped; they are base64, hex and digits,
    none of which can contain "]]>".
    """
    return (
        "<xml>\n"
        f"<Encrypt><![CDATA[{encrypted}]]></Encrypt>\n"
        f"<MsgSignature><![CDATA[{signature}]]></MsgSignature>\n"
        f"<TimeStamp>{timestamp}</TimeStamp>\n"
        f"<Nonce><![CDATA[{nonce}]]></Nonce>\n"
        "</xml>"
    )
