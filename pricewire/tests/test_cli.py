import json

import pytest
from typer.testing import CliRunner

from pricewire.cli import app
from pricewire.tests.helpers import ADDR_A

KEY_HEX = "0x" + "00" * 31 + "01"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_version(runner):
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "version" in json.loads(result.stdout)


def test_address_from_env(runner):
    result = runner.invoke(app, ["address"], env={"PRICEWIRE_PRIVATE_KEY": KEY_HEX})
    assert result.exit_code == 0
    assert result.stdout.strip() == ADDR_A


def test_address_requires_key(runner):
    result = runner.invoke(app, ["address"], env={"PRICEWIRE_PRIVATE_KEY": ""})
    assert result.exit_code != 0


def test_invalid_key_is_not_echoed(runner):
    bad = "0x" + "ff" * 32
    result = runner.invoke(app, ["address", "--key", bad])
    assert result.exit_code == 2
    assert bad not in result.output


def test_sign_encode_decode(runner, tmp_path):
    signed = runner.invoke(
        app, ["sign", "-p", "ETH=1800.25", "-p", "AVAX=5", "-t", "1700000000", "--key", KEY_HEX]
    )
    assert signed.exit_code == 0, signed.output
    doc = json.loads(signed.stdout)
    assert doc["signer"] == ADDR_A
    assert doc["timestamp"] == 1_700_000_000
    assert doc["prices"][0] == {"symbol": "ETH", "value": 180_025_000_000}

    path = tmp_path / "pkg.json"
    path.write_text(signed.stdout)
    for encoding in ("full", "lite"):
        encoded = runner.invoke(app, ["encode", str(path), "--encoding", encoding])
        assert encoded.exit_code == 0, encoded.output
        payload = encoded.stdout.strip()
        assert payload.startswith("0x")

        decoded = runner.invoke(app, ["decode", payload, "--encoding", encoding])
        assert decoded.exit_code == 0, decoded.output
        out = json.loads(decoded.stdout)
        assert out["recovered_signer"] == ADDR_A
        assert out["prices"] == doc["prices"]

        extracted = runner.invoke(app, ["decode", "0xa9059cbb" + payload[2:], "-e", encoding, "--extract"])
        assert json.loads(extracted.stdout)["original_calldata"] == "0xa9059cbb"


def test_encode_from_stdin(runner):
    signed = runner.invoke(app, ["sign", "-p", "ETH=1", "-t", "1", "--key", KEY_HEX])
    result = runner.invoke(app, ["encode", "-", "-e", "lite"], input=signed.stdout)
    assert result.exit_code == 0
    assert result.stdout.strip().startswith("0x")


def test_decode_malformed_payload(runner):
    result = runner.invoke(app, ["decode", "0x00", "--encoding", "lite"])
    assert result.exit_code == 1


def test_bad_price_argument(runner):
    result = runner.invoke(app, ["sign", "-p", "ETH", "--key", KEY_HEX])
    assert result.exit_code == 2


def test_unknown_encoding(runner):
    result = runner.invoke(app, ["decode", "0x00", "--encoding", "compact"])
    assert result.exit_code == 2


def test_fetch_from_mock_feed(runner, tmp_path):
    feeds = tmp_path / "feeds.yaml"
    feeds.write_text("feeds:\n  local:\n    kind: mock\n    prices:\n      ETH: 1800\n", encoding="utf-8")
    args = ["--log-level", "WARNING", "fetch", "local", "-e", "lite"]
    result = runner.invoke(app, args, env={"PRICEWIRE_FEEDS_FILE": str(feeds)})
    assert result.exit_code == 0, result.output
    out = json.loads(result.stdout)
    assert out["recovered_signer"] == out["signer"]
    assert out["payload"].startswith("0x")


def test_fetch_unknown_feed(runner):
    result = runner.invoke(app, ["fetch", "no-such-feed"], env={"PRICEWIRE_FEEDS_FILE": ""})
    assert result.exit_code == 1
