"""Contract ABI encoding for the handful of calls the tools make.

Only the types those calls need are supported: ``uint256``, ``address``,
``bool`` and dynamic arrays of them.
"""

from typing import Any, List, Sequence

# Function selectors (first 4 bytes of keccak256 of the signature)
ERC20_BALANCE_OF = "70a08231"  # balanceOf(address)
ERC20_DECIMALS = "313ce567"  # decimals()
ERC20_SYMBOL = "95d89b41"  # symbol()
SWAP_EXACT_ETH_FOR_TOKENS = "7ff36ab5"  # swapExactETHForTokens(uint256,address[],address,uint256)
SWAP_EXACT_TOKENS_FOR_ETH = "18cbafe5"  # swapExactTokensForETH(uint256,uint256,address[],address,uint256)

WORD = 32


def _encode_static(abi_type: str, value: Any) -> bytes:
    if abi_type == "uint256":
        if not 0 <= value < 2**256:
            raise ValueError(f"uint256 out of range: {value}")
        return int(value).to_bytes(WORD, "big")
    if abi_type == "address":
        raw = bytes.fromhex(value[2:] if value.startswith("0x") else value)
        if len(raw) != 20:
            raise ValueError(f"Invalid address: {value}")
        return raw.rjust(WORD, b"\x00")
    if abi_type == "bool":
        return (1 if value else 0).to_bytes(WORD, "big")
    raise ValueError(f"Unsupported ABI type: {abi_type}")


def encode_arguments(types: Sequence[str], values: Sequence[Any]) -> bytes:
    """Head/tail encode a tuple of arguments."""
    if len(types) != len(values):
        raise ValueError("types and values differ in length")

    heads: List[bytes] = []
    tails: List[bytes] = []
    head_size = WORD * len(types)
    for abi_type, value in zip(types, values):
        if abi_type.endswith("[]"):
            offset = head_size + sum(len(tail) for tail in tails)
            heads.append(_encode_static("uint256", offset))
            item_type = abi_type[:-2]
            tails.append(
                _encode_static("uint256", len(value))
                + b"".join(_encode_static(item_type, item) for item in value)
            )
        else:
            heads.append(_encode_static(abi_type, value))
    return b"".join(heads) + b"".join(tails)


def encode_call(selector: str, types: Sequence[str] = (), values: Sequence[Any] = ()) -> str:
    """Build hex calldata for a function call."""
    return "0x" + selector + encode_arguments(types, values).hex()


def decode_uint(data: str) -> int:
    raw = data[2:] if data.startswith("0x") else data
    if not raw:
        raise ValueError("empty return data")
    return int(raw[:64], 16)


def decode_string(data: str) -> str:
    """Decode a ``string`` return value, tolerating legacy ``bytes32`` tokens."""
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    if not raw:
        raise ValueError("empty return data")
    if len(raw) == WORD:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
    offset = int.from_bytes(raw[:WORD], "big")
    length = int.from_bytes(raw[offset:offset + WORD], "big")
    return raw[offset + WORD:offset + WORD + length].decode("utf-8", errors="replace")
