"""
pricewire.devnet
================

In-memory execution backend for local development and tests.

- `InterfaceContract`: base class for Python-implemented contracts. Methods
  decorated with `abi_function` form the contract's `ContractInterface`;
  incoming calldata is dispatched by selector, arguments are ABI-decoded
  (trailing bytes, such as an appended price payload, are ignored) and return
  values are ABI-encoded.
- `LocalExecutor`: deploys contracts at deterministic addresses and executes
  requests sequentially against an injected clock. Exceptions raised by a
  contract propagate to the caller unchanged; there is no revert/snapshot
  layer.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from typing import Any, Callable, ClassVar, Dict, Optional, Sequence

from . import logging as plog
from .abi import ContractInterface, FunctionSpec
from .contract import CallRequest, Contract, TxReceipt
from .errors import AbiError, PriceWireError
from .utils.address import ZERO_ADDRESS, normalize_address, to_checksum_address
from .utils.hash import keccak256
from .verifier import Clock, system_clock

_LOG = plog.get_logger("pricewire.devnet")


@dataclass(frozen=True)
class ExecutionContext:
    """What a contract sees while handling one call."""

    sender: str
    to: str
    calldata: bytes
    block_time: int
    value: int = 0
    read_only: bool = False

    @property
    def selector(self) -> bytes:
        return self.calldata[:4]

    def with_calldata(self, calldata: bytes) -> "ExecutionContext":
        return replace(self, calldata=bytes(calldata))


def abi_function(signature: str, returns: Sequence[str] = (), *, view: bool = False) -> Callable:
    """
    Declare a contract method as ABI-callable.

        @abi_function("balanceOf(address,bytes32)", ["uint256"], view=True)
        def balance_of(self, ctx, account, symbol): ...

    The handler receives the `ExecutionContext` followed by the decoded arguments.
    """
    spec = FunctionSpec.parse(signature, returns, read_only=view)

    def deco(fn: Callable) -> Callable:
        fn.__abi_spec__ = spec  # type: ignore[attr-defined]
        return fn

    return deco


class InterfaceContract:
    INTERFACE: ClassVar[ContractInterface] = ContractInterface(())
    _HANDLERS: ClassVar[Dict[bytes, str]] = {}

    address: str = ZERO_ADDRESS

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        specs: Dict[str, FunctionSpec] = {}
        handlers: Dict[bytes, str] = {}
        for klass in reversed(cls.__mro__):
            for attr, member in vars(klass).items():
                spec = getattr(member, "__abi_spec__", None)
                if isinstance(spec, FunctionSpec):
                    specs[spec.name] = spec
                    handlers[spec.selector] = attr
        cls.INTERFACE = ContractInterface(specs.values())
        cls._HANDLERS = handlers

    def handle(self, ctx: ExecutionContext) -> bytes:
        spec = self.INTERFACE.by_selector(ctx.calldata)
        if spec is None or len(ctx.calldata) < 4:
            raise AbiError(f"unknown selector 0x{bytes(ctx.calldata[:4]).hex()} for {type(self).__name__}")
        args = spec.decode_call(ctx.calldata)
        result = getattr(self, self._HANDLERS[spec.selector])(ctx, *args)
        if not spec.outputs:
            return b""
        values = result if len(spec.outputs) > 1 else (result,)
        return spec.encode_result(values)


class LocalExecutor:
    """
    Sequential in-memory executor implementing `ExecutionBackend`.

    Parameters
    ----------
    clock : Callable[[], int] | None
        Block time source in seconds (default: wall clock).
    default_sender : str
        Used when a request carries no sender.
    """

    def __init__(self, clock: Optional[Clock] = None, *, default_sender: str = ZERO_ADDRESS) -> None:
        self.clock: Clock = clock or system_clock
        self.default_sender = normalize_address(default_sender)
        self._contracts: Dict[str, InterfaceContract] = {}
        self._deploy_nonce = itertools.count(1)
        self._tx_nonce = itertools.count(1)
        self.receipts: list[TxReceipt] = []

    # ---- deployment ----------------------------------------------------------------

    def deploy(self, contract: InterfaceContract, address: Optional[str] = None) -> str:
        if address is None:
            address = to_checksum_address(keccak256(b"pricewire.devnet:%d" % next(self._deploy_nonce))[-20:])
        addr = normalize_address(address)
        if addr in self._contracts:
            raise PriceWireError(f"address already in use: {addr}")
        contract.address = addr
        self._contracts[addr] = contract
        _LOG.debug("contract deployed", extra={"contract": type(contract).__name__, "address": addr})
        return addr

    def contract_at(self, address: str) -> InterfaceContract:
        try:
            return self._contracts[normalize_address(address)]
        except KeyError:
            raise PriceWireError(f"no contract deployed at {address}") from None

    def handle(self, contract: InterfaceContract, sender: Optional[str] = None) -> Contract:
        """Client-side `Contract` for a deployed contract, bound to this executor."""
        return Contract(contract.address, contract.INTERFACE, self, sender)

    def now(self) -> int:
        return int(self.clock())

    # ---- ExecutionBackend ----------------------------------------------------------

    def _execute(self, request: CallRequest, *, read_only: bool) -> bytes:
        target = self.contract_at(request.to)
        ctx = ExecutionContext(
            sender=normalize_address(request.sender) if request.sender else self.default_sender,
            to=target.address,
            calldata=bytes(request.data),
            block_time=self.now(),
            value=request.value,
            read_only=read_only,
        )
        return target.handle(ctx)

    async def call(self, request: CallRequest) -> bytes:
        return self._execute(request, read_only=True)

    async def send_transaction(self, request: CallRequest) -> TxReceipt:
        block_time = self.now()
        nonce = next(self._tx_nonce)
        data = self._execute(request, read_only=False)
        tx_hash = keccak256(
            bytes.fromhex(normalize_address(request.to)[2:]) + bytes(request.data) + nonce.to_bytes(8, "big")
        )
        receipt = TxReceipt(
            tx_hash="0x" + tx_hash.hex(),
            status=1,
            return_data=data,
            block_time=block_time,
            sender=request.sender or self.default_sender,
            to=normalize_address(request.to),
        )
        self.receipts.append(receipt)
        return receipt


__all__ = [
    "ExecutionContext",
    "abi_function",
    "InterfaceContract",
    "LocalExecutor",
]
