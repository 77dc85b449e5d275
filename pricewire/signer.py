"""
pricewire.signer
================

secp256k1 signing and signer recovery for price packages.

The signed message is the canonical hash of the package, domain-separated with
the personal-message prefix::

    digest = keccak256(b"\\x19Ethereum Signed Message:\\n32" || keccak256(canonical_bytes))

Signatures are 65 bytes, ``r(32) || s(32) || v(1)`` with ``v in {27, 28}``.
Nonces are deterministic (RFC 6979) and ``s`` is normalized to the lower half
of the curve order, so signing the same package with the same key always
yields the same bytes.

Identities are 20-byte addresses (last 20 bytes of keccak256 over the
uncompressed public key) rendered with the EIP-55 checksum.

Key material is never logged; `PriceSigner.__repr__` only shows the address.
"""

from __future__ import annotations

import hashlib
from typing import Union

from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.ecdsa import InvalidPointError
from ecdsa.errors import MalformedPointError
from ecdsa.numbertheory import SquareRootError
from ecdsa.util import sigdecode_string, sigencode_string_canonize

from .encoding import SIGNATURE_LENGTH, canonical_hash
from .errors import InvalidSignature
from .types import PricePackage, SignedPackage
from .utils.address import normalize_address, same_address, to_checksum_address
from .utils.bytes import BytesLike, ensure_bytes
from .utils.hash import keccak256

PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"

_N = SECP256k1.order

PrivateKeyLike = Union[str, BytesLike, int]


def personal_message_hash(message_hash: bytes) -> bytes:
    if len(message_hash) != 32:
        raise ValueError("personal message hash expects a 32-byte digest")
    return keccak256(PERSONAL_MESSAGE_PREFIX + message_hash)


def package_digest(package: PricePackage) -> bytes:
    """The 32-byte digest actually signed for `package`."""
    return personal_message_hash(canonical_hash(package))


# --------------------------------------------------------------------------- keys


def _signing_key(private_key: PrivateKeyLike) -> SigningKey:
    if isinstance(private_key, int) and not isinstance(private_key, bool):
        secret = private_key
    else:
        raw = ensure_bytes(private_key)
        if len(raw) != 32:
            raise ValueError("private key must be 32 bytes")
        secret = int.from_bytes(raw, "big")
    if not 1 <= secret < _N:
        raise ValueError("private key out of range for secp256k1")
    return SigningKey.from_secret_exponent(secret, curve=SECP256k1, hashfunc=hashlib.sha256)


def public_key_to_address(public_key: bytes) -> str:
    """64-byte uncompressed point (x || y) -> checksummed address."""
    if len(public_key) != 64:
        raise ValueError("public key must be 64 bytes (x || y)")
    return to_checksum_address(keccak256(public_key)[-20:])


def address_of(private_key: PrivateKeyLike) -> str:
    """
    Address controlled by `private_key`.

    >>> address_of(1)
    '0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf'
    """
    return public_key_to_address(_signing_key(private_key).get_verifying_key().to_string())


# --------------------------------------------------------------------------- sign / recover


def _recover_candidates(digest: bytes, rs: bytes) -> list:
    """
    Both public keys that validate `rs` over `digest`. The first comes from
    the even-y nonce point (recovery id 0), the second from the odd one.
    """
    try:
        return VerifyingKey.from_public_key_recovery_with_digest(
            rs, digest, SECP256k1, hashfunc=hashlib.sha256, sigdecode=sigdecode_string
        )
    except SquareRootError as e:
        raise InvalidSignature("r is not the x-coordinate of a curve point", encoding="signature", cause=e) from e
    except (InvalidPointError, MalformedPointError, TypeError) as e:
        # TypeError: the point at infinity has no coordinates.
        raise InvalidSignature("signature does not recover to a valid public key", encoding="signature", cause=e) from e


def _split_signature(signature: BytesLike) -> tuple[bytes, int]:
    sig = bytes(signature)
    if len(sig) != SIGNATURE_LENGTH:
        raise InvalidSignature(
            "signature must be 65 bytes", encoding="signature", expected=SIGNATURE_LENGTH, actual=len(sig)
        )
    r = int.from_bytes(sig[:32], "big")
    s = int.from_bytes(sig[32:64], "big")
    v = sig[64]
    if v in (0, 1):
        v += 27
    if v not in (27, 28):
        raise InvalidSignature("recovery id v must be 27 or 28", encoding="signature", actual=v)
    if not (1 <= r < _N and 1 <= s < _N):
        raise InvalidSignature("r/s out of range", encoding="signature")
    return sig[:64], v - 27


def recover_digest_signer(digest: bytes, signature: BytesLike) -> str:
    """Recover the address that signed a raw 32-byte digest."""
    rs, recid = _split_signature(signature)
    return public_key_to_address(_recover_candidates(digest, rs)[recid].to_string())


def recover_signer(package: PricePackage, signature: BytesLike) -> str:
    """Checksummed address whose key produced `signature` over `package`."""
    return recover_digest_signer(package_digest(package), signature)


def sign_digest(digest: bytes, private_key: PrivateKeyLike) -> bytes:
    return _sign_with(_signing_key(private_key), digest)


def _sign_with(sk: SigningKey, digest: bytes) -> bytes:
    rs = sk.sign_digest_deterministic(digest, hashfunc=hashlib.sha256, sigencode=sigencode_string_canonize)
    own = sk.get_verifying_key().to_string()
    for recid, candidate in enumerate(_recover_candidates(digest, rs)):
        if candidate.to_string() == own:
            return rs + bytes([27 + recid])
    raise InvalidSignature("could not determine recovery id", encoding="signature")  # pragma: no cover


def sign_package(package: PricePackage, private_key: PrivateKeyLike) -> SignedPackage:
    """Sign `package`; the result carries the signer's checksummed address."""
    signature = sign_digest(package_digest(package), private_key)
    return SignedPackage(package, signature, address_of(private_key))


def verify_package(signed: SignedPackage, expected_signer: str) -> bool:
    try:
        return same_address(recover_signer(signed.package, signed.signature), expected_signer)
    except InvalidSignature:
        return False


class PriceSigner:
    """
    A private key bundled with its address.

    >>> s = PriceSigner(1)
    >>> s.address
    '0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf'
    """

    __slots__ = ("_key", "_address")

    def __init__(self, private_key: PrivateKeyLike) -> None:
        self._key = _signing_key(private_key)
        self._address = public_key_to_address(self._key.get_verifying_key().to_string())

    @property
    def address(self) -> str:
        return self._address

    def sign(self, package: PricePackage) -> SignedPackage:
        return SignedPackage(package, _sign_with(self._key, package_digest(package)), self._address)

    def __repr__(self) -> str:
        return f"PriceSigner(address={self._address})"

    __str__ = __repr__


__all__ = [
    "PERSONAL_MESSAGE_PREFIX",
    "InvalidSignature",
    "personal_message_hash",
    "package_digest",
    "address_of",
    "public_key_to_address",
    "to_checksum_address",
    "normalize_address",
    "same_address",
    "recover_digest_signer",
    "recover_signer",
    "sign_digest",
    "sign_package",
    "verify_package",
    "PriceSigner",
]
