"""
csob_gateway/crypto.py

署名エンジン - RSA-SHA256による署名と検証

- 署名: canonical string（UTF-8）のSHA-256をRSA秘密鍵で署名（PKCS#1 v1.5）し、
  改行を含まない1行のBase64で返す
- 検証: Base64をデコードし、期待する文字列に対してRSA公開鍵で検証

鍵はプロセスの生存期間中は不変。cryptographyの鍵オブジェクトは
複数スレッドから同時に利用できる。
"""

import base64
import binascii
from enum import Enum
from typing import Optional, Tuple, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from csob_gateway.exceptions import CryptoError
from csob_gateway.logger import get_logger, log_crypto_operation

logger = get_logger(__name__, service_name='csob_gateway')

ALGORITHM = "RSA-SHA256"

PemData = Union[str, bytes]


class VerificationOutcome(str, Enum):
    """署名検証の結果"""

    VALID = "valid"
    INVALID_SIGNATURE = "invalid_signature"
    MISSING_SIGNATURE = "missing_signature"

    @property
    def is_valid(self) -> bool:
        return self is VerificationOutcome.VALID


# ========================================
# 署名と検証
# ========================================

def sign_string(string: str, private_key: rsa.RSAPrivateKey) -> bytes:
    """
    文字列に署名（生の署名バイト列）

    Args:
        string: 署名対象文字列
        private_key: RSA秘密鍵

    Returns:
        bytes: 署名
    """
    signature = private_key.sign(
        string.encode('utf-8'),
        padding.PKCS1v15(),
        hashes.SHA256()
    )
    log_crypto_operation(logger, "sign", ALGORITHM)
    return signature


def sign_encode_string(string: str, private_key: rsa.RSAPrivateKey) -> str:
    """
    文字列に署名してBase64エンコード

    Returns:
        str: 改行を含まない1行のBase64署名
    """
    signature = sign_string(string, private_key)
    return base64.b64encode(signature).decode('ascii').replace("\n", "")


def verify_string(signature: bytes, expected: str, public_key: rsa.RSAPublicKey) -> bool:
    """
    署名を検証

    Args:
        signature: 署名バイト列
        expected: 署名されたはずの文字列
        public_key: RSA公開鍵

    Returns:
        bool: 検証結果（True=有効、False=無効）
    """
    try:
        public_key.verify(
            signature,
            expected.encode('utf-8'),
            padding.PKCS1v15(),
            hashes.SHA256()
        )
    except InvalidSignature:
        log_crypto_operation(logger, "verify", ALGORITHM, success=False)
        return False

    log_crypto_operation(logger, "verify", ALGORITHM)
    return True


def decode_verify_string(encoded: str, expected: str, public_key: rsa.RSAPublicKey) -> bool:
    """
    Base64署名をデコードして検証

    不正なBase64は検証失敗として扱う。
    """
    try:
        signature = base64.b64decode(encoded.encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        logger.warning("[Crypto] Signature is not valid base64")
        return False
    return verify_string(signature, expected, public_key)


def verify_outcome(
    encoded: Optional[str],
    expected: str,
    public_key: rsa.RSAPublicKey
) -> VerificationOutcome:
    """Base64署名を検証し、結果を名前付きで返す"""
    if not encoded:
        return VerificationOutcome.MISSING_SIGNATURE
    if decode_verify_string(encoded, expected, public_key):
        return VerificationOutcome.VALID
    return VerificationOutcome.INVALID_SIGNATURE


# ========================================
# 鍵の読み込み
# ========================================

def _to_bytes(pem: PemData) -> bytes:
    return pem.encode('utf-8') if isinstance(pem, str) else pem


def load_private_key(pem: PemData, passphrase: Optional[str] = None) -> rsa.RSAPrivateKey:
    """
    PEM形式のRSA秘密鍵を読み込み

    Args:
        pem: PEM文字列またはバイト列
        passphrase: 暗号化されている場合のパスフレーズ

    Returns:
        rsa.RSAPrivateKey

    Raises:
        CryptoError: 鍵が読めない、またはRSA鍵ではない
    """
    password = passphrase.encode('utf-8') if passphrase else None
    try:
        key = serialization.load_pem_private_key(_to_bytes(pem), password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CryptoError(f"Cannot load private key: {e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise CryptoError(f"Private key is not an RSA key: {type(key).__name__}")
    return key


def load_public_key(pem: PemData) -> rsa.RSAPublicKey:
    """
    PEM形式のRSA公開鍵を読み込み

    Raises:
        CryptoError: 鍵が読めない、またはRSA鍵ではない
    """
    try:
        key = serialization.load_pem_public_key(_to_bytes(pem))
    except (ValueError, UnsupportedAlgorithm) as e:
        raise CryptoError(f"Cannot load public key: {e}") from e

    if not isinstance(key, rsa.RSAPublicKey):
        raise CryptoError(f"Public key is not an RSA key: {type(key).__name__}")
    return key


def generate_key_pair(key_size: int = 2048) -> Tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    """新しいRSA鍵ペアを生成（テスト・鍵作成ツール用）"""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    return private_key, private_key.public_key()


def private_key_to_pem(private_key: rsa.RSAPrivateKey) -> str:
    """秘密鍵をPEM文字列に変換（暗号化なし）"""
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode('utf-8')


def public_key_to_pem(public_key: rsa.RSAPublicKey) -> str:
    """公開鍵をPEM文字列に変換"""
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('utf-8')
