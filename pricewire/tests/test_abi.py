import pytest

from pricewire.abi import (ContractInterface, FunctionSpec, canonical_type, decode, encode,
                           function_selector, parse_type)
from pricewire.errors import AbiError, MalformedPayload
from pricewire.tests.helpers import ADDR_A


def _w(n: int) -> bytes:
    return n.to_bytes(32, "big")


def test_known_selectors():
    assert function_selector("transfer(address,uint256)").hex() == "a9059cbb"
    assert function_selector("balanceOf(address)").hex() == "70a08231"
    # uint is an alias of uint256
    assert function_selector("transfer(address, uint)") == function_selector("transfer(address,uint256)")


def test_parse_type_shapes():
    t = parse_type("(bytes32[],uint256[],uint256)")
    assert t.base == "tuple" and t.is_dynamic
    assert canonical_type("uint[2][]") == "uint256[2][]"
    nested = parse_type("uint8[2][]")
    assert nested.dims == (2, None)
    assert nested.element().dims == (2,)
    assert not parse_type("uint8[2]").is_dynamic
    assert parse_type("uint8[2]").static_size == 64
    for bad in ("uint7", "bytes33", "foo", "uint256[0]", "(uint256"):
        with pytest.raises(AbiError):
            parse_type(bad)


def test_static_encoding_layout():
    data = encode(["uint256", "address", "bool"], [1, ADDR_A, True])
    assert data == _w(1) + b"\x00" * 12 + bytes.fromhex(ADDR_A[2:]) + _w(1)
    assert decode(["uint256", "address", "bool"], data) == (1, ADDR_A, True)


def test_dynamic_bytes_layout():
    data = encode(["bytes"], [b"\x01\x02"])
    assert data == _w(32) + _w(2) + b"\x01\x02" + b"\x00" * 30


def test_signed_integers():
    data = encode(["int8", "int256"], [-1, -(2**255)])
    assert data[:32] == b"\xff" * 32
    assert decode(["int8", "int256"], data) == (-1, -(2**255))
    with pytest.raises(AbiError):
        encode(["int8"], [128])


def test_tuple_with_dynamic_arrays_roundtrip():
    symbols = [b"ETH".ljust(32, b"\x00"), b"AVAX".ljust(32, b"\x00")]
    value = (symbols, [10, 5], 1_700_000_000)
    data = encode(["(bytes32[],uint256[],uint256)", "bytes"], [value, b"\xaa" * 65])
    decoded_value, sig = decode(["(bytes32[],uint256[],uint256)", "bytes"], data)
    assert decoded_value == (symbols, [10, 5], 1_700_000_000)
    assert sig == b"\xaa" * 65


def test_string_and_fixed_arrays():
    data = encode(["string", "uint16[3]"], ["héllo", [1, 2, 3]])
    assert decode(["string", "uint16[3]"], data) == ("héllo", [1, 2, 3])


def test_encoding_errors():
    with pytest.raises(AbiError):
        encode(["uint8"], [256])
    with pytest.raises(AbiError):
        encode(["uint256"], [-1])
    with pytest.raises(AbiError):
        encode(["bool"], [1])
    with pytest.raises(AbiError):
        encode(["bytes2"], [b"abc"])
    with pytest.raises(AbiError):
        encode(["address"], ["0x1234"])
    with pytest.raises(AbiError):
        encode(["uint256[2]"], [[1]])
    with pytest.raises(AbiError):
        encode(["uint256"], [1, 2])


def test_decoding_errors():
    with pytest.raises(MalformedPayload):
        decode(["uint256"], b"\x00" * 31)
    # offset pointing past the end
    with pytest.raises(MalformedPayload):
        decode(["bytes"], _w(4096))
    # length larger than the remaining data
    with pytest.raises(MalformedPayload):
        decode(["bytes"], _w(32) + _w(1000))
    with pytest.raises(MalformedPayload):
        decode(["bool"], _w(2))
    with pytest.raises(MalformedPayload):
        decode(["uint8"], _w(256))
    with pytest.raises(MalformedPayload):
        decode(["uint256[]"], _w(32) + _w(2**64))


def test_trailing_bytes_are_ignored():
    data = encode(["uint256"], [7]) + b"\xde\xad\xbe\xef"
    assert decode(["uint256"], data) == (7,)


def test_function_spec_call_roundtrip():
    spec = FunctionSpec.parse("transfer(address,uint256)", ["bool"])
    calldata = spec.encode_call([ADDR_A, 5])
    assert calldata[:4].hex() == "a9059cbb"
    assert spec.decode_call(calldata) == (ADDR_A, 5)
    assert spec.decode_result(spec.encode_result([True])) == (True,)
    with pytest.raises(MalformedPayload):
        spec.decode_call(b"\x00\x00\x00\x00" + calldata[4:])
    with pytest.raises(AbiError) as ei:
        spec.encode_call([ADDR_A])
    assert ei.value.function == "transfer"


ERC20_ABI = [
    {
        "type": "function",
        "name": "balanceOf",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "transfer",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address"}, {"name": "value", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "setPrices",
        "inputs": [
            {
                "name": "data",
                "type": "tuple",
                "components": [
                    {"name": "symbols", "type": "bytes32[]"},
                    {"name": "values", "type": "uint256[]"},
                    {"name": "timestamp", "type": "uint256"},
                ],
            },
            {"name": "signature", "type": "bytes"},
        ],
        "outputs": [],
    },
    {"type": "event", "name": "Transfer", "inputs": []},
]


def test_interface_from_json_abi():
    iface = ContractInterface.from_abi(ERC20_ABI)
    assert iface.names == ("balanceOf", "transfer", "setPrices")
    assert iface.get("balanceOf").read_only
    assert not iface.get("transfer").read_only
    assert iface.get("setPrices").signature == "setPrices((bytes32[],uint256[],uint256),bytes)"
    assert iface.by_selector(bytes.fromhex("70a08231")).name == "balanceOf"
    assert "Transfer" not in iface
    with pytest.raises(AbiError):
        iface.get("approve")


def test_interface_rejects_duplicates():
    with pytest.raises(AbiError):
        ContractInterface([FunctionSpec("f", ("uint256",)), FunctionSpec("f", ("address",))])
