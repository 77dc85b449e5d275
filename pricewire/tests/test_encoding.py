import pytest

from pricewire.encoding import (CLEAR_PRICES, MAX_LITE_ENTRIES, PROTOCOL_MARKER, SET_PRICES, Encoding,
                                FullEncoder, LiteEncoder, canonical_bytes, encoder_for, parse_canonical)
from pricewire.errors import MalformedPayload
from pricewire.signer import recover_signer, sign_package
from pricewire.tests.helpers import ADDR_A, AVAX, ETH, KEY_A, T0
from pricewire.types import PricePackage, SignedPackage
from pricewire.utils.hash import keccak256

ORIGINAL = bytes.fromhex("a9059cbb") + b"\x11" * 64


@pytest.fixture
def signed() -> SignedPackage:
    return sign_package(PricePackage.from_prices({"ETH": 10, "AVAX": 5}, T0), KEY_A)


def test_marker_is_keccak_of_version_string():
    assert PROTOCOL_MARKER == keccak256(b"Redstone.version.0.0.1")


def test_function_signatures():
    assert SET_PRICES.signature == "setPrices((bytes32[],uint256[],uint256),bytes)"
    assert CLEAR_PRICES.signature == "clearPrices((bytes32[],uint256[],uint256))"


def test_canonical_bytes_layout(signed):
    data = canonical_bytes(signed.package)
    assert len(data) == 2 * 64 + 32
    assert data[:32] == ETH
    assert int.from_bytes(data[32:64], "big") == 1_000_000_000
    assert data[64:96] == AVAX
    assert int.from_bytes(data[-32:], "big") == T0
    assert parse_canonical(data) == signed.package
    with pytest.raises(MalformedPayload):
        parse_canonical(data[:-1])


def test_canonical_bytes_of_empty_package():
    data = canonical_bytes(PricePackage((), 5))
    assert data == (5).to_bytes(32, "big")
    assert parse_canonical(data) == PricePackage((), 5)


def test_full_layout(signed):
    enc = FullEncoder()
    payload = enc.encode(signed)
    set_data = enc.set_calldata(signed)
    assert payload[:4] == CLEAR_PRICES.selector
    assert payload[4 : 4 + len(set_data)] == set_data
    assert set_data[:4] == SET_PRICES.selector
    assert int.from_bytes(payload[-34:-32], "big") == len(set_data)
    assert payload[-32:] == PROTOCOL_MARKER
    assert len(payload) == 4 + len(set_data) + 2 + 32


def test_full_extract(signed):
    enc = encoder_for("full")
    original, found = enc.extract(ORIGINAL + enc.encode(signed))
    assert original == ORIGINAL
    assert found.package == signed.package
    assert found.signature == signed.signature
    assert found.signer is None
    assert recover_signer(found.package, found.signature) == ADDR_A
    assert enc.decode(enc.encode(signed)).package == signed.package
    assert FullEncoder.has_marker(ORIGINAL + enc.encode(signed))
    assert not FullEncoder.has_marker(ORIGINAL)


def test_full_rejects_bad_marker_and_truncation(signed):
    enc = FullEncoder()
    payload = ORIGINAL + enc.encode(signed)
    with pytest.raises(MalformedPayload):
        enc.extract(payload[:-1] + bytes([payload[-1] ^ 1]))
    with pytest.raises(MalformedPayload):
        enc.extract(payload[:30])
    # length field claims more bytes than exist
    bogus = b"\xff\xff" + PROTOCOL_MARKER
    with pytest.raises(MalformedPayload):
        enc.extract(b"\x00" * 10 + bogus)
    with pytest.raises(MalformedPayload):
        enc.decode(payload)


def test_full_rejects_wrong_clear_selector(signed):
    payload = FullEncoder().encode(signed)
    with pytest.raises(MalformedPayload):
        FullEncoder().extract(b"\x00\x00\x00\x00" + payload[4:])


def test_lite_layout(signed):
    enc = LiteEncoder()
    payload = enc.encode(signed)
    assert payload[: 2 * 64 + 32] == canonical_bytes(signed.package)
    assert payload[-66] == 2
    assert payload[-65:] == signed.signature
    original, found = enc.extract(ORIGINAL + payload)
    assert original == ORIGINAL
    assert found.package == signed.package
    assert recover_signer(found.package, found.signature) == ADDR_A


def test_lite_rejects_count_beyond_data(signed):
    payload = bytearray(LiteEncoder().encode(signed))
    payload[-66] = 200
    with pytest.raises(MalformedPayload):
        LiteEncoder().extract(bytes(payload))
    with pytest.raises(MalformedPayload):
        LiteEncoder().extract(b"\x00" * 40)


def test_lite_entry_limit():
    many = PricePackage.from_values({f"S{i}": i for i in range(MAX_LITE_ENTRIES + 1)}, T0)
    with pytest.raises(MalformedPayload):
        LiteEncoder().encode(SignedPackage(many, b"\x01" * 65))


def test_short_signature_rejected_by_encoders(signed):
    short = SignedPackage(signed.package, signed.signature[:64])
    for enc in (FullEncoder(), LiteEncoder()):
        with pytest.raises(MalformedPayload):
            enc.encode(short)


def test_encoder_for():
    assert encoder_for(Encoding.LITE).encoding is Encoding.LITE
    assert isinstance(encoder_for("full"), FullEncoder)
    with pytest.raises(ValueError):
        encoder_for("compact")
