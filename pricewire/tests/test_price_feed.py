import pytest
from prometheus_client import REGISTRY

from pricewire.errors import (DelayTooShort, InvalidSignature, InvalidVerifier, NoPricingData, OverwriteConflict,
                              StaleTimestamp, Unauthorized, UnauthorizedSigner)
from pricewire.signer import sign_package
from pricewire.tests.helpers import ADDR_A, ADDR_B, ADMIN, ALICE, KEY_A, KEY_B, T0
from pricewire.types import PriceEntry, PricePackage
from pricewire.verifier import ClearPolicy, PriceFeed, PriceVerifier


def _feed(clock, delay=300, **kw) -> PriceFeed:
    feed = PriceFeed(PriceVerifier(), delay, owner=ADMIN, clock=clock, **kw)
    feed.authorize_signer(ADMIN, ADDR_A)
    return feed


def _signed(prices, ts=T0, key=KEY_A):
    return sign_package(PricePackage.from_values(prices, ts), key)


# ---- construction ----------------------------------------------------------------


def test_requires_verifier():
    with pytest.raises(InvalidVerifier):
        PriceFeed(None, 180, owner=ADMIN)


def test_minimum_delay(clock):
    with pytest.raises(DelayTooShort) as ei:
        PriceFeed(PriceVerifier(), 14, owner=ADMIN)
    assert ei.value.minimum == 15
    assert PriceFeed(PriceVerifier(), 15, owner=ADMIN).max_price_delay == 15


# ---- administration --------------------------------------------------------------


def test_only_owner_manages_signers(clock):
    feed = _feed(clock)
    with pytest.raises(Unauthorized):
        feed.authorize_signer(ALICE, ADDR_B)
    with pytest.raises(Unauthorized):
        feed.revoke_signer(ALICE, ADDR_A)
    assert feed.is_signer_authorized(ADDR_A)
    assert feed.is_signer_authorized(ADDR_A.lower())
    assert not feed.is_signer_authorized(ADDR_B)
    assert not feed.is_signer_authorized("not-an-address")

    feed.revoke_signer(ADMIN, ADDR_A)
    assert feed.authorized_signers == frozenset()


@pytest.mark.parametrize("caller", [None, 42, b"\x01"])
def test_non_address_caller_is_unauthorized(clock, caller):
    feed = _feed(clock)
    with pytest.raises(Unauthorized):
        feed.authorize_signer(caller, ADDR_B)
    assert not feed.is_signer_authorized(ADDR_B)


def test_transfer_ownership(clock):
    feed = _feed(clock)
    feed.transfer_ownership(ADMIN, ALICE)
    assert feed.owner == ALICE
    with pytest.raises(Unauthorized):
        feed.authorize_signer(ADMIN, ADDR_B)
    feed.authorize_signer(ALICE, ADDR_B)
    assert feed.is_signer_authorized(ADDR_B)


# ---- admission -------------------------------------------------------------------


def test_set_and_get(clock):
    feed = _feed(clock)
    signed = _signed({"ETH": 1_000_000_000, "AVAX": 500_000_000})
    assert feed.set_prices(signed.package, signed.signature) == ADDR_A
    assert feed.get_price("ETH") == 1_000_000_000
    assert feed.get_prices(["AVAX", "ETH"]) == [500_000_000, 1_000_000_000]
    assert feed.has_price("AVAX")


def test_unauthorized_signer_writes_nothing(clock):
    feed = _feed(clock)
    signed = _signed({"ETH": 1}, key=KEY_B)
    with pytest.raises(UnauthorizedSigner) as ei:
        feed.set_prices(signed.package, signed.signature)
    assert ei.value.signer == ADDR_B
    assert not feed.has_price("ETH")


def test_revoked_signer_is_rejected(clock):
    feed = _feed(clock)
    feed.revoke_signer(ADMIN, ADDR_A)
    signed = _signed({"ETH": 1})
    with pytest.raises(UnauthorizedSigner):
        feed.set_prices(signed.package, signed.signature)


def test_freshness_boundary(clock):
    feed = _feed(clock, delay=300)
    signed = _signed({"ETH": 1}, ts=T0 - 300)
    feed.set_prices(signed.package, signed.signature)
    feed.clear_prices(signed.package)

    stale = _signed({"ETH": 1}, ts=T0 - 301)
    with pytest.raises(StaleTimestamp) as ei:
        feed.set_prices(stale.package, stale.signature)
    assert ei.value.age == 301
    assert ei.value.symbols == ("ETH",)
    assert ei.value.context["symbols"] == ["ETH"]
    assert not feed.has_price("ETH")


def test_clock_moves_window(clock):
    feed = _feed(clock, delay=60)
    signed = _signed({"ETH": 1})
    clock.advance(61)
    with pytest.raises(StaleTimestamp):
        feed.set_prices(signed.package, signed.signature)
    # an explicit reference time overrides the clock
    feed.set_prices(signed.package, signed.signature, now=T0 + 60)


def test_future_timestamps_accepted(clock):
    feed = _feed(clock)
    signed = _signed({"ETH": 1}, ts=T0 + 3600)
    feed.set_prices(signed.package, signed.signature)
    assert feed.get_price("ETH") == 1


def test_overwrite_conflict_is_atomic(clock):
    feed = _feed(clock)
    first = _signed({"ETH": 1})
    feed.set_prices(first.package, first.signature)

    second = _signed({"AVAX": 2, "ETH": 3})
    with pytest.raises(OverwriteConflict) as ei:
        feed.set_prices(second.package, second.signature)
    assert ei.value.symbol == "ETH"
    assert not feed.has_price("AVAX")
    assert feed.get_price("ETH") == 1


def test_duplicate_symbol_in_package(clock):
    feed = _feed(clock)
    package = PricePackage((PriceEntry("ETH", 1), PriceEntry("ETH", 2)), T0)
    signed = sign_package(package, KEY_A)
    with pytest.raises(OverwriteConflict):
        feed.set_prices(signed.package, signed.signature)
    assert not feed.has_price("ETH")


def test_tampered_values_fail_authorization(clock):
    feed = _feed(clock)
    signed = _signed({"ETH": 1})
    forged = PricePackage.from_values({"ETH": 2}, T0)
    with pytest.raises(UnauthorizedSigner):
        feed.set_prices(forged, signed.signature)


# ---- clearing and queries --------------------------------------------------------


def test_clear_is_idempotent(clock):
    feed = _feed(clock)
    signed = _signed({"ETH": 1, "AVAX": 2})
    feed.set_prices(signed.package, signed.signature)
    feed.clear_prices(signed.package)
    feed.clear_prices(signed.package)
    assert not feed.has_price("ETH")
    with pytest.raises(NoPricingData):
        feed.get_price("AVAX")

    # cleared symbols can be set again
    feed.set_prices(signed.package, signed.signature)
    assert feed.get_price("AVAX") == 2


def test_clear_only_touches_listed_symbols(clock):
    feed = _feed(clock)
    signed = _signed({"ETH": 1, "AVAX": 2})
    feed.set_prices(signed.package, signed.signature)
    feed.clear_prices(PricePackage.from_values({"ETH": 0, "BTC": 0}, 0))
    assert not feed.has_price("ETH")
    assert feed.get_price("AVAX") == 2


def test_get_prices_fails_on_any_missing(clock):
    feed = _feed(clock)
    signed = _signed({"ETH": 1})
    feed.set_prices(signed.package, signed.signature)
    with pytest.raises(NoPricingData) as ei:
        feed.get_prices(["ETH", "BTC"])
    assert ei.value.symbol == "BTC"


def test_signed_clear_policy(clock):
    feed = _feed(clock, clear_policy=ClearPolicy.SIGNED)
    signed = _signed({"ETH": 1})
    feed.set_prices(signed.package, signed.signature)
    with pytest.raises(UnauthorizedSigner):
        feed.clear_prices(signed.package)
    other = _signed({"ETH": 1}, key=KEY_B)
    with pytest.raises(UnauthorizedSigner):
        feed.clear_prices(other.package, other.signature)
    assert feed.has_price("ETH")
    feed.clear_prices(signed.package, signed.signature)
    assert not feed.has_price("ETH")


def test_invalid_signature_is_counted(clock):
    feed = _feed(clock)
    signed = _signed({"ETH": 1})

    def rejected():
        return REGISTRY.get_sample_value("pricewire_packages_rejected_total", {"reason": "invalid_signature"}) or 0.0

    before = rejected()
    with pytest.raises(InvalidSignature):
        feed.set_prices(signed.package, signed.signature[:64])
    assert rejected() == before + 1
    assert not feed.has_price("ETH")
