"""
Ethereum contract ABI codec (head/tail encoding) and call-surface descriptions.

This module defines:
- A parser for ABI type strings (``uint256``, ``bytes32[]``, ``(bytes32[],uint256[],uint256)``)
- `encode(types, values)` / `decode(types, data)` for argument lists
- `function_selector(signature)`: first 4 bytes of keccak256(signature)
- `FunctionSpec` / `ContractInterface`: an explicit, enumerated call surface,
  built by hand or from an Ethereum JSON ABI

Supported types: uint<N>, int<N>, bool, address, bytes<N>, bytes, string,
fixed and dynamic arrays, tuples. Encoding errors raise `AbiError`; decoding
errors raise `MalformedPayload` with ``encoding="abi"``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import AbiError, MalformedPayload
from .utils.address import address_to_bytes, to_checksum_address
from .utils.bytes import WORD, ensure_bytes, int_to_word
from .utils.hash import keccak256

# --- Type-string parsing -----------------------------------------------------

_ARRAY_SUFFIX_RE = re.compile(r"(\[\]|\[\d+\])$")
_INT_RE = re.compile(r"^(u?int)(\d*)$")
_FIXED_BYTES_RE = re.compile(r"^bytes(\d+)$")


@dataclass(frozen=True)
class AbiType:
    """
    Parsed ABI type.

    base : "uint" | "int" | "bool" | "address" | "fixed_bytes" | "bytes" | "string" | "tuple"
    size : bit width for integers, byte width for fixed bytes
    dims : array dimensions as written left to right (None = dynamic); the
           outermost dimension is the last one
    """

    base: str
    size: int = 0
    components: Tuple["AbiType", ...] = ()
    dims: Tuple[Optional[int], ...] = ()

    @property
    def is_array(self) -> bool:
        return bool(self.dims)

    def element(self) -> "AbiType":
        return AbiType(self.base, self.size, self.components, self.dims[:-1])

    @property
    def is_dynamic(self) -> bool:
        if self.dims:
            return self.dims[-1] is None or self.element().is_dynamic
        if self.base in ("bytes", "string"):
            return True
        if self.base == "tuple":
            return any(c.is_dynamic for c in self.components)
        return False

    @property
    def static_size(self) -> int:
        """Bytes occupied in the head section (static types only)."""
        if self.dims:
            n = self.dims[-1]
            assert n is not None
            return n * self.element().static_size
        if self.base == "tuple":
            return sum(c.static_size for c in self.components)
        return WORD

    @property
    def head_size(self) -> int:
        return WORD if self.is_dynamic else self.static_size

    def canonical(self) -> str:
        if self.base in ("uint", "int"):
            s = f"{self.base}{self.size}"
        elif self.base == "fixed_bytes":
            s = f"bytes{self.size}"
        elif self.base == "tuple":
            s = "(" + ",".join(c.canonical() for c in self.components) + ")"
        else:
            s = self.base
        return s + "".join("[]" if d is None else f"[{d}]" for d in self.dims)

    def __str__(self) -> str:
        return self.canonical()


def _split_top_level_commas(s: str) -> List[str]:
    """Split on commas but ignore commas inside nested tuples."""
    out: List[str] = []
    depth = 0
    buf: List[str] = []
    for ch in s:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise AbiError("Unbalanced parentheses in tuple type")
        if ch == "," and depth == 0:
            out.append("".join(buf).strip())
            buf = []
        else:
            buf.append(ch)
    if depth != 0:
        raise AbiError("Unbalanced parentheses in tuple type")
    if buf or out:
        out.append("".join(buf).strip())
    return out


def parse_type(type_str: Union[str, AbiType]) -> AbiType:
    """Parse an ABI type string into an `AbiType` (``uint`` is an alias of ``uint256``)."""
    if isinstance(type_str, AbiType):
        return type_str
    s = re.sub(r"\s+", "", type_str)
    dims: List[Optional[int]] = []
    while True:
        m = _ARRAY_SUFFIX_RE.search(s)
        if not m:
            break
        suffix = m.group(1)
        s = s[: -len(suffix)]
        if suffix == "[]":
            dims.append(None)
        else:
            size = int(suffix[1:-1])
            if size <= 0:
                raise AbiError(f"Fixed array dimension must be positive: {type_str!r}")
            dims.append(size)
    dims.reverse()

    if s.startswith("(") and s.endswith(")"):
        inner = s[1:-1]
        comps = tuple(parse_type(e) for e in _split_top_level_commas(inner)) if inner else ()
        return AbiType("tuple", 0, comps, tuple(dims))

    m = _INT_RE.match(s)
    if m:
        bits = int(m.group(2)) if m.group(2) else 256
        if bits % 8 or not 8 <= bits <= 256:
            raise AbiError(f"Unsupported integer width: {type_str!r}")
        return AbiType(m.group(1), bits, (), tuple(dims))
    m = _FIXED_BYTES_RE.match(s)
    if m:
        n = int(m.group(1))
        if not 1 <= n <= 32:
            raise AbiError(f"Unsupported fixed bytes width: {type_str!r}")
        return AbiType("fixed_bytes", n, (), tuple(dims))
    if s in ("bool", "address", "bytes", "string"):
        return AbiType(s, 0, (), tuple(dims))
    raise AbiError(f"Unsupported ABI type: {type_str!r}")


def canonical_type(type_str: str) -> str:
    return parse_type(type_str).canonical()


# --- Encoding ------------------------------------------------------------------


def _pad_right(b: bytes) -> bytes:
    rem = len(b) % WORD
    return b + b"\x00" * ((WORD - rem) % WORD)


def _encode_scalar(t: AbiType, value: Any) -> bytes:
    if t.base in ("uint", "int"):
        if isinstance(value, bool) or not isinstance(value, int):
            raise AbiError(f"{t} expects an int, got {type(value).__name__}")
        if t.base == "uint":
            if not 0 <= value < (1 << t.size):
                raise AbiError(f"value out of range for {t}: {value}")
            return int_to_word(value)
        lo, hi = -(1 << (t.size - 1)), (1 << (t.size - 1))
        if not lo <= value < hi:
            raise AbiError(f"value out of range for {t}: {value}")
        return int_to_word(value % (1 << 256))
    if t.base == "bool":
        if not isinstance(value, bool):
            raise AbiError(f"bool expects True/False, got {value!r}")
        return int_to_word(int(value))
    if t.base == "address":
        try:
            return address_to_bytes(value).rjust(WORD, b"\x00")
        except (TypeError, ValueError) as e:
            raise AbiError(f"invalid address: {value!r}", cause=e) from e
    if t.base == "fixed_bytes":
        raw = _as_bytes(t, value)
        if len(raw) > t.size:
            raise AbiError(f"{t} expects at most {t.size} bytes, got {len(raw)}")
        return raw.ljust(WORD, b"\x00")
    if t.base == "bytes":
        raw = _as_bytes(t, value)
        return int_to_word(len(raw)) + _pad_right(raw)
    if t.base == "string":
        if not isinstance(value, str):
            raise AbiError(f"string expects str, got {type(value).__name__}")
        raw = value.encode("utf-8")
        return int_to_word(len(raw)) + _pad_right(raw)
    raise AbiError(f"cannot encode {t}")  # pragma: no cover


def _as_bytes(t: AbiType, value: Any) -> bytes:
    try:
        return ensure_bytes(value)
    except (TypeError, ValueError) as e:
        raise AbiError(f"{t} expects bytes or 0x-hex, got {value!r}", cause=e) from e


def _encode_value(t: AbiType, value: Any) -> bytes:
    if t.dims:
        if isinstance(value, (str, bytes, bytearray)) or not isinstance(value, Iterable):
            raise AbiError(f"{t} expects a sequence, got {type(value).__name__}")
        items = list(value)
        n = t.dims[-1]
        elem = t.element()
        if n is None:
            return int_to_word(len(items)) + _encode_sequence([elem] * len(items), items)
        if len(items) != n:
            raise AbiError(f"{t} expects {n} elements, got {len(items)}")
        return _encode_sequence([elem] * n, items)
    if t.base == "tuple":
        if isinstance(value, Mapping) or isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise AbiError(f"{t} expects a tuple/list, got {type(value).__name__}")
        items = list(value)
        if len(items) != len(t.components):
            raise AbiError(f"{t} expects {len(t.components)} components, got {len(items)}")
        return _encode_sequence(list(t.components), items)
    return _encode_scalar(t, value)


def _encode_sequence(types: Sequence[AbiType], values: Sequence[Any]) -> bytes:
    head_len = sum(t.head_size for t in types)
    heads: List[bytes] = []
    tails: List[bytes] = []
    tail_len = 0
    for t, v in zip(types, values):
        enc = _encode_value(t, v)
        if t.is_dynamic:
            heads.append(int_to_word(head_len + tail_len))
            tails.append(enc)
            tail_len += len(enc)
        else:
            heads.append(enc)
    return b"".join(heads) + b"".join(tails)


def encode(types: Sequence[Union[str, AbiType]], values: Sequence[Any]) -> bytes:
    """ABI-encode `values` as an argument list of `types`."""
    parsed = [parse_type(t) for t in types]
    if len(parsed) != len(values):
        raise AbiError(f"expected {len(parsed)} values, got {len(values)}")
    return _encode_sequence(parsed, list(values))


# --- Decoding ------------------------------------------------------------------


def _bad(message: str, *, offset: Optional[int] = None, **kw: Any) -> MalformedPayload:
    return MalformedPayload(message, encoding="abi", offset=offset, **kw)


def _read_word(data: bytes, offset: int) -> int:
    if offset < 0 or offset + WORD > len(data):
        raise _bad("word out of bounds", offset=offset, expected=offset + WORD, actual=len(data))
    return int.from_bytes(data[offset : offset + WORD], "big")


def _decode_scalar(t: AbiType, data: bytes, offset: int) -> Any:
    word = _read_word(data, offset)
    if t.base == "uint":
        if word >> t.size:
            raise _bad(f"value does not fit {t}", offset=offset)
        return word
    if t.base == "int":
        value = word - (1 << 256) if word >> 255 else word
        if not -(1 << (t.size - 1)) <= value < (1 << (t.size - 1)):
            raise _bad(f"value does not fit {t}", offset=offset)
        return value
    if t.base == "bool":
        if word not in (0, 1):
            raise _bad("invalid bool", offset=offset, actual=word)
        return bool(word)
    if t.base == "address":
        if word >> 160:
            raise _bad("dirty address padding", offset=offset)
        return to_checksum_address(word.to_bytes(20, "big"))
    if t.base == "fixed_bytes":
        raw = data[offset : offset + WORD]
        if any(raw[t.size :]):
            raise _bad(f"dirty {t} padding", offset=offset)
        return bytes(raw[: t.size])
    if t.base in ("bytes", "string"):
        length = word
        start = offset + WORD
        if start + length > len(data):
            raise _bad(f"{t} length exceeds data", offset=offset, expected=start + length, actual=len(data))
        raw = bytes(data[start : start + length])
        if t.base == "bytes":
            return raw
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise _bad("string is not valid UTF-8", offset=offset, cause=e) from e
    raise _bad(f"cannot decode {t}", offset=offset)  # pragma: no cover


def _decode_value(t: AbiType, data: bytes, offset: int) -> Any:
    if t.dims:
        elem = t.element()
        n = t.dims[-1]
        if n is None:
            n = _read_word(data, offset)
            offset += WORD
            if n * elem.head_size > len(data) - offset:
                raise _bad(f"{t} length exceeds data", offset=offset, actual=n)
        return _decode_sequence([elem] * n, data, offset)
    if t.base == "tuple":
        return tuple(_decode_sequence(list(t.components), data, offset))
    return _decode_scalar(t, data, offset)


def _decode_sequence(types: Sequence[AbiType], data: bytes, base: int) -> List[Any]:
    out: List[Any] = []
    pos = base
    for t in types:
        if t.is_dynamic:
            rel = _read_word(data, pos)
            start = base + rel
            if start > len(data):
                raise _bad("offset out of bounds", offset=pos, expected=len(data), actual=start)
            out.append(_decode_value(t, data, start))
        else:
            out.append(_decode_value(t, data, pos))
        pos += t.head_size
    return out


def decode(types: Sequence[Union[str, AbiType]], data: bytes) -> Tuple[Any, ...]:
    """Decode an ABI-encoded argument list. Trailing bytes are tolerated."""
    parsed = [parse_type(t) for t in types]
    return tuple(_decode_sequence(parsed, bytes(data), 0))


# --- Selectors ---------------------------------------------------------------


def function_selector(signature: str) -> bytes:
    """
    First 4 bytes of keccak256 over the canonical signature.

    >>> function_selector("transfer(address,uint256)").hex()
    'a9059cbb'
    """
    name, types = _split_signature(signature)
    canonical = f"{name}({','.join(canonical_type(t) for t in types)})"
    return keccak256(canonical.encode("utf-8"))[:4]


def _split_signature(signature: str) -> Tuple[str, List[str]]:
    s = signature.strip()
    i = s.find("(")
    if i <= 0 or not s.endswith(")"):
        raise AbiError(f"invalid function signature: {signature!r}")
    name = s[:i]
    if not re.match(r"^[A-Za-z_$][A-Za-z0-9_$]*$", name):
        raise AbiError(f"invalid function name: {name!r}")
    inner = s[i + 1 : -1]
    return name, (_split_top_level_commas(inner) if inner.strip() else [])


# --- Call surfaces -----------------------------------------------------------


@dataclass(frozen=True)
class FunctionSpec:
    """
    One callable entry of a contract interface.

    `read_only` functions are simulated (`call`); everything else is submitted
    as a transaction (`send`).
    """

    name: str
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()
    read_only: bool = False
    input_names: Tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(canonical_type(t) for t in self.inputs))
        object.__setattr__(self, "outputs", tuple(canonical_type(t) for t in self.outputs))

    @classmethod
    def parse(cls, signature: str, outputs: Sequence[str] = (), *, read_only: bool = False) -> "FunctionSpec":
        """``FunctionSpec.parse("balanceOf(address)", ["uint256"], read_only=True)``"""
        name, types = _split_signature(signature)
        return cls(name, tuple(types), tuple(outputs), read_only)

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return keccak256(self.signature.encode("utf-8"))[:4]

    def encode_call(self, args: Sequence[Any]) -> bytes:
        if len(args) != len(self.inputs):
            raise AbiError(
                f"{self.name} expects {len(self.inputs)} arguments, got {len(args)}", function=self.name
            )
        try:
            return self.selector + encode(self.inputs, list(args))
        except AbiError as e:
            if e.function is None:
                raise AbiError(e.message, function=self.name, cause=e) from e
            raise

    def decode_call(self, calldata: bytes) -> Tuple[Any, ...]:
        if len(calldata) < 4 or calldata[:4] != self.selector:
            raise MalformedPayload(
                f"selector mismatch for {self.name}",
                encoding="abi",
                expected="0x" + self.selector.hex(),
                actual="0x" + bytes(calldata[:4]).hex(),
            )
        return decode(self.inputs, calldata[4:])

    def encode_result(self, values: Sequence[Any]) -> bytes:
        return encode(self.outputs, list(values))

    def decode_result(self, data: bytes) -> Tuple[Any, ...]:
        return decode(self.outputs, data)


class ContractInterface:
    """
    Enumerated call surface: function name -> `FunctionSpec`.

    Names must be unique (overloads are not supported); selectors are indexed
    for dispatch on the receiving side.
    """

    def __init__(self, functions: Iterable[FunctionSpec]) -> None:
        self._by_name: Dict[str, FunctionSpec] = {}
        self._by_selector: Dict[bytes, FunctionSpec] = {}
        for fn in functions:
            if fn.name in self._by_name:
                raise AbiError(f"Duplicate function in interface: {fn.name}", function=fn.name)
            if fn.selector in self._by_selector:
                raise AbiError(f"Selector collision: {fn.signature}", function=fn.name)
            self._by_name[fn.name] = fn
            self._by_selector[fn.selector] = fn

    @classmethod
    def from_abi(cls, abi: Union[str, Sequence[Mapping[str, Any]]]) -> "ContractInterface":
        """
        Build from an Ethereum JSON ABI (list or JSON string). Non-function
        entries are ignored; ``view``/``pure`` (or legacy ``constant``) become
        read-only.
        """
        entries = json.loads(abi) if isinstance(abi, str) else abi
        if not isinstance(entries, list):
            raise AbiError("ABI must be a list of entries")
        fns: List[FunctionSpec] = []
        for i, e in enumerate(entries):
            if not isinstance(e, Mapping):
                raise AbiError(f"ABI entry at index {i} must be an object")
            if e.get("type", "function") != "function":
                continue
            name = e.get("name")
            if not isinstance(name, str) or not name:
                raise AbiError(f"function name missing at index {i}")
            mut = e.get("stateMutability")
            read_only = mut in ("view", "pure") if mut is not None else bool(e.get("constant", False))
            fns.append(
                FunctionSpec(
                    name=name,
                    inputs=tuple(_json_param_type(p) for p in e.get("inputs", [])),
                    outputs=tuple(_json_param_type(p) for p in e.get("outputs", [])),
                    read_only=read_only,
                    input_names=tuple(str(p.get("name", "")) for p in e.get("inputs", [])),
                )
            )
        return cls(fns)

    def get(self, name: str) -> FunctionSpec:
        try:
            return self._by_name[name]
        except KeyError:
            raise AbiError(f"Function not found in interface: {name}", function=name) from None

    def by_selector(self, selector: bytes) -> Optional[FunctionSpec]:
        return self._by_selector.get(bytes(selector[:4]))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self):
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)

    def __repr__(self) -> str:
        return f"ContractInterface({', '.join(self._by_name)})"


def _json_param_type(p: Mapping[str, Any]) -> str:
    t = p.get("type")
    if not isinstance(t, str):
        raise AbiError("param.type must be a string")
    if t.startswith("tuple"):
        comps = ",".join(_json_param_type(c) for c in p.get("components", []))
        return f"({comps}){t[len('tuple'):]}"
    return t


__all__ = [
    "AbiType",
    "parse_type",
    "canonical_type",
    "encode",
    "decode",
    "function_selector",
    "FunctionSpec",
    "ContractInterface",
]
