"""
pricewire.contract
==================

A small contract handle over an execution backend that:
- Encodes function calls from an explicit `ContractInterface`
- Simulates read-only calls (`backend.call`) and decodes their results
- Submits mutating calls (`backend.send_transaction`) and returns the receipt

Only the functions declared by the interface are reachable; attribute access
for anything else raises `AttributeError`.

Example
-------
    iface = ContractInterface.from_abi(abi_json)
    defi = Contract(address, iface, backend, sender=alice)

    await defi.deposit(symbol32, 100)        # -> TxReceipt
    await defi.balanceOf(alice, symbol32)    # -> int
    req = defi.populate_transaction("balanceOf", alice, symbol32)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from .abi import ContractInterface, FunctionSpec
from .utils.address import normalize_address


@dataclass(frozen=True)
class CallRequest:
    to: str
    data: bytes
    sender: Optional[str] = None
    value: int = 0

    def with_data(self, data: bytes) -> "CallRequest":
        return replace(self, data=bytes(data))


@dataclass(frozen=True)
class TxReceipt:
    tx_hash: str
    status: int
    return_data: bytes = b""
    block_time: int = 0
    sender: Optional[str] = None
    to: Optional[str] = None
    logs: tuple = field(default=())

    @property
    def ok(self) -> bool:
        return self.status == 1


@runtime_checkable
class ExecutionBackend(Protocol):
    async def call(self, request: CallRequest) -> bytes: ...

    async def send_transaction(self, request: CallRequest) -> TxReceipt: ...


class ContractFunction:
    """A declared function bound to a contract; awaiting it calls or sends."""

    __slots__ = ("contract", "spec")

    def __init__(self, contract: "Contract", spec: FunctionSpec) -> None:
        self.contract = contract
        self.spec = spec

    @property
    def name(self) -> str:
        return self.spec.name

    def populate(self, *args: Any) -> CallRequest:
        return self.contract.populate_transaction(self.spec.name, *args)

    async def call(self, *args: Any) -> Any:
        return await self.contract.call(self.spec.name, *args)

    async def send(self, *args: Any) -> TxReceipt:
        return await self.contract.send(self.spec.name, *args)

    async def __call__(self, *args: Any) -> Any:
        return await self.contract.invoke(self.spec.name, *args)

    def __repr__(self) -> str:
        return f"<ContractFunction {self.spec.signature} read_only={self.spec.read_only}>"


class Contract:
    def __init__(
        self,
        address: str,
        interface: ContractInterface,
        backend: ExecutionBackend,
        sender: Optional[str] = None,
    ) -> None:
        self.address = normalize_address(address)
        self.interface = interface
        self.backend = backend
        self.sender = normalize_address(sender) if sender is not None else None

    # ---- encoding ----------------------------------------------------------------

    def populate_transaction(self, fn: str, *args: Any, value: int = 0) -> CallRequest:
        """Build the request an unwrapped invocation of `fn` would submit."""
        spec = self.interface.get(fn)
        return CallRequest(to=self.address, data=spec.encode_call(args), sender=self.sender, value=value)

    def decode_result(self, fn: str, data: bytes) -> Any:
        """Decode return data; a single output is unwrapped, several come back as a tuple."""
        values = self.interface.get(fn).decode_result(data)
        if len(values) == 1:
            return values[0]
        return values

    # ---- execution -----------------------------------------------------------------

    async def execute(self, fn: str, request: CallRequest) -> Any:
        """
        Submit an already-populated request for `fn`: simulate and decode when
        `fn` is read-only, otherwise send and return the receipt unchanged.
        """
        spec = self.interface.get(fn)
        if spec.read_only:
            return self.decode_result(fn, await self.backend.call(request))
        return await self.backend.send_transaction(request)

    async def invoke(self, fn: str, *args: Any) -> Any:
        return await self.execute(fn, self.populate_transaction(fn, *args))

    async def call(self, fn: str, *args: Any) -> Any:
        return self.decode_result(fn, await self.backend.call(self.populate_transaction(fn, *args)))

    async def send(self, fn: str, *args: Any) -> TxReceipt:
        return await self.backend.send_transaction(self.populate_transaction(fn, *args))

    # ---- surface -------------------------------------------------------------------

    @property
    def functions(self) -> Mapping[str, ContractFunction]:
        return {spec.name: ContractFunction(self, spec) for spec in self.interface}

    def __getattr__(self, name: str) -> ContractFunction:
        # Only reached for names not found normally.
        if name.startswith("_"):
            raise AttributeError(name)
        interface = self.__dict__.get("interface")
        if interface is not None and name in interface:
            return ContractFunction(self, interface.get(name))
        raise AttributeError(f"{type(self).__name__} has no function {name!r}")

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(self.interface.names))

    def connect(self, sender: str) -> "Contract":
        return Contract(self.address, self.interface, self.backend, sender)

    def attach(self, address: str) -> "Contract":
        return Contract(address, self.interface, self.backend, self.sender)

    def __repr__(self) -> str:
        return f"Contract(address={self.address}, functions={list(self.interface.names)})"


__all__ = [
    "CallRequest",
    "TxReceipt",
    "ExecutionBackend",
    "ContractFunction",
    "Contract",
]
