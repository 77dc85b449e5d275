import pytest
from ecdsa import SECP256k1

from pricewire.errors import InvalidSignature
from pricewire.signer import (PriceSigner, address_of, package_digest, personal_message_hash, recover_signer,
                              sign_package, verify_package)
from pricewire.encoding import canonical_hash
from pricewire.tests.helpers import ADDR_A, ADDR_B, KEY_A, KEY_B, T0
from pricewire.types import PricePackage
from pricewire.utils.hash import keccak256

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


@pytest.fixture
def package() -> PricePackage:
    return PricePackage.from_prices({"ETH": 10, "AVAX": 5}, T0)


def test_well_known_addresses():
    assert address_of(KEY_A) == ADDR_A
    assert address_of(KEY_B) == ADDR_B
    assert address_of("0x" + "00" * 31 + "01") == ADDR_A
    assert address_of(b"\x00" * 31 + b"\x02") == ADDR_B


@pytest.mark.parametrize("bad", [0, SECP256K1_N, "0x01", b"\x01" * 31])
def test_invalid_private_keys(bad):
    with pytest.raises(ValueError):
        address_of(bad)


def test_digest_uses_personal_message_prefix(package):
    inner = canonical_hash(package)
    assert package_digest(package) == keccak256(b"\x19Ethereum Signed Message:\n32" + inner)
    assert personal_message_hash(inner) == package_digest(package)


def test_sign_and_recover(package):
    signed = sign_package(package, KEY_A)
    assert len(signed.signature) == 65
    assert signed.signature[64] in (27, 28)
    assert signed.signer == ADDR_A
    assert recover_signer(package, signed.signature) == ADDR_A
    assert signed.verify()
    assert verify_package(signed, ADDR_A.lower())
    assert not verify_package(signed, ADDR_B)


def test_signing_is_deterministic_and_low_s(package):
    a = sign_package(package, KEY_B).signature
    assert a == sign_package(package, KEY_B).signature
    s = int.from_bytes(a[32:64], "big")
    assert s <= SECP256K1_N // 2


def test_tampered_package_recovers_someone_else(package):
    signed = sign_package(package, KEY_A)
    tampered = PricePackage.from_prices({"ETH": 11, "AVAX": 5}, T0)
    assert recover_signer(tampered, signed.signature) != ADDR_A
    later = PricePackage.from_prices({"ETH": 10, "AVAX": 5}, T0 + 1)
    assert recover_signer(later, signed.signature) != ADDR_A


def test_entry_order_is_significant(package):
    signed = sign_package(package, KEY_A)
    reordered = PricePackage.from_prices({"AVAX": 5, "ETH": 10}, T0)
    assert recover_signer(reordered, signed.signature) != ADDR_A


def test_zero_based_recovery_id_accepted(package):
    sig = sign_package(package, KEY_A).signature
    assert recover_signer(package, sig[:64] + bytes([sig[64] - 27])) == ADDR_A


def test_malformed_signatures(package):
    sig = sign_package(package, KEY_A).signature
    with pytest.raises(InvalidSignature):
        recover_signer(package, sig[:64])
    with pytest.raises(InvalidSignature):
        recover_signer(package, sig[:64] + b"\x1d")
    with pytest.raises(InvalidSignature):
        recover_signer(package, b"\x00" * 32 + sig[32:])
    with pytest.raises(InvalidSignature):
        recover_signer(package, sig[:32] + SECP256K1_N.to_bytes(32, "big") + sig[64:])


def test_price_signer_hides_key(package):
    signer = PriceSigner(KEY_A)
    assert signer.address == ADDR_A
    assert signer.sign(package) == sign_package(package, KEY_A)
    assert repr(signer) == f"PriceSigner(address={ADDR_A})"
    assert not hasattr(signer, "__dict__")


def test_signature_recovering_to_infinity_is_rejected(package):
    # R = kG with s = e / k makes s*R - e*G the point at infinity.
    digest = package_digest(package)
    k = 7
    R = SECP256k1.generator * k
    r = R.x()
    e = int.from_bytes(digest, "big")
    s = e * pow(k, -1, SECP256K1_N) % SECP256K1_N
    sig = r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([27 + R.y() % 2])
    with pytest.raises(InvalidSignature):
        recover_signer(package, sig)


def test_recovery_id_selects_the_signer(package):
    signed = sign_package(package, KEY_A)
    flipped = signed.signature[:64] + bytes([55 - signed.signature[64]])
    assert recover_signer(package, flipped) != ADDR_A
