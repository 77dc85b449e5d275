"""
pricewire.cli
=============

`pricewire`: sign, encode, decode and fetch price packages from the shell.

Examples
--------
    $ pricewire address                                   # key from PRICEWIRE_PRIVATE_KEY
    $ pricewire sign -p ETH=1800.25 -p BTC=30000 > pkg.json
    $ pricewire encode pkg.json --encoding lite
    $ pricewire decode 0x... --encoding lite
    $ pricewire fetch redstone --asset ETH --encoding full

Configuration
-------------
- Private key  : `--key` or env `PRICEWIRE_PRIVATE_KEY` (never printed)
- Cache URL    : env `PRICEWIRE_CACHE_URL`
- Feeds file   : env `PRICEWIRE_FEEDS_FILE`
- Log level    : `--log-level` or env `PRICEWIRE_LOG_LEVEL`
"""

from __future__ import annotations

import asyncio
import json
import sys
import time
from pathlib import Path
from typing import Any, List, Optional

import typer

from . import logging as plog
from .config import PriceWireConfig
from .encoding import Encoding, encoder_for
from .errors import ConfigError, MalformedPayload, PriceWireError
from .feeds import build_connector
from .signer import PriceSigner, recover_signer
from .types import PricePackage, SignedPackage
from .utils.bytes import from_hex, to_hex
from .version import version_info

app = typer.Typer(
    name="pricewire",
    help="Signed price payloads: sign, encode, decode and fetch.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main"]

_KEY_OPTION = typer.Option(
    None,
    "--key",
    "-k",
    help="Hex private key (defaults to $PRICEWIRE_PRIVATE_KEY).",
    envvar="PRICEWIRE_PRIVATE_KEY",
    show_envvar=False,
    show_default=False,
)

_ENCODING_OPTION = typer.Option("full", "--encoding", "-e", help="Payload layout: full | lite.")


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _fail(err: PriceWireError) -> None:
    typer.echo(json.dumps(err.to_dict(), default=str), err=True)
    raise typer.Exit(code=1)


def _signer(key: Optional[str]) -> PriceSigner:
    if not key:
        raise typer.BadParameter("a private key is required (--key or PRICEWIRE_PRIVATE_KEY)")
    try:
        return PriceSigner(key.strip())
    except ValueError:
        # The message would echo the key; keep it generic.
        raise typer.BadParameter("invalid private key") from None


def _encoding(value: str) -> Encoding:
    try:
        return Encoding(value.lower())
    except ValueError:
        raise typer.BadParameter(f"encoding must be one of {[e.value for e in Encoding]}") from None


def _parse_prices(items: List[str]) -> dict:
    prices = {}
    for item in items:
        symbol, sep, value = item.partition("=")
        if not sep or not symbol or not value:
            raise typer.BadParameter(f"expected SYMBOL=VALUE, got {item!r}")
        prices[symbol.strip()] = value.strip()
    return prices


def _read_signed(source: str) -> SignedPackage:
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
        return SignedPackage(PricePackage.from_dict(data), from_hex(data["signature"]), data.get("signer"))
    except (KeyError, TypeError, ValueError) as e:
        raise typer.BadParameter(f"not a signed package document: {e}") from e


def _signed_view(signed: SignedPackage) -> dict:
    out = signed.to_dict()
    try:
        out["recovered_signer"] = recover_signer(signed.package, signed.signature)
    except MalformedPayload as e:
        out["recovered_signer"] = None
        out["signature_error"] = e.message
    return out


@app.callback()
def _root(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (default from env or INFO)."),
) -> None:
    try:
        cfg = PriceWireConfig.from_env()
    except ConfigError as e:
        _fail(e)
    plog.configure(level=(log_level or cfg.log_level), stream=sys.stderr)


@app.command("version")
def version() -> None:
    """Print version information."""
    _print_json(version_info())


@app.command("address")
def address(key: Optional[str] = _KEY_OPTION) -> None:
    """Print the address controlled by the private key."""
    typer.echo(_signer(key).address)


@app.command("sign")
def sign(
    price: List[str] = typer.Option(..., "--price", "-p", help="SYMBOL=VALUE (human price), repeatable."),
    timestamp: Optional[int] = typer.Option(None, "--timestamp", "-t", help="Package timestamp in seconds (default: now)."),
    key: Optional[str] = _KEY_OPTION,
) -> None:
    """Build and sign a price package; prints it as JSON."""
    signer = _signer(key)
    try:
        package = PricePackage.from_prices(_parse_prices(price), timestamp if timestamp is not None else int(time.time()))
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    _print_json(signer.sign(package).to_dict())


@app.command("encode")
def encode(
    source: str = typer.Argument("-", help="Signed package JSON file ('-' for stdin)."),
    encoding: str = _ENCODING_OPTION,
) -> None:
    """Encode a signed package JSON document into a calldata payload (hex)."""
    signed = _read_signed(source)
    try:
        typer.echo(to_hex(encoder_for(_encoding(encoding)).encode(signed)))
    except PriceWireError as e:
        _fail(e)


@app.command("decode")
def decode(
    payload: str = typer.Argument(..., help="Hex payload, or full calldata with --extract."),
    encoding: str = _ENCODING_OPTION,
    extract: bool = typer.Option(False, "--extract", help="Payload sits at the tail of larger calldata."),
) -> None:
    """Decode a payload and recover its signer."""
    enc = encoder_for(_encoding(encoding))
    try:
        blob = from_hex(payload.strip())
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    try:
        if extract:
            original, signed = enc.extract(blob)
            out = _signed_view(signed)
            out["original_calldata"] = to_hex(original)
        else:
            out = _signed_view(enc.decode(blob))
    except PriceWireError as e:
        _fail(e)
    _print_json(out)


@app.command("fetch")
def fetch(
    feed_id: str = typer.Argument(..., help="Price feed id (e.g. redstone, redstone-stocks)."),
    asset: Optional[str] = typer.Option(None, "--asset", "-a", help="Restrict to one asset."),
    encoding: Optional[str] = typer.Option(None, "--encoding", "-e", help="Also print the encoded payload."),
) -> None:
    """Fetch the latest package from a feed and print it."""
    enc = _encoding(encoding) if encoding else None

    async def _run() -> dict:
        connector = build_connector(feed_id, asset)
        result = await connector.fetch(asset)
        if isinstance(result, PricePackage):
            return {"package": result.to_dict(), "signed": False}
        out = _signed_view(result)
        if enc is not None:
            out["payload"] = to_hex(encoder_for(enc).encode(result))
        return out

    try:
        _print_json(asyncio.run(_run()))
    except PriceWireError as e:
        _fail(e)


def main() -> None:  # pragma: no cover - console entry
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
