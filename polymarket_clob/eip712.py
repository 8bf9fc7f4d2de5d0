"""
EIP-712 typed-data hashing.

Structs are described as ordered ``(name, type)`` pairs. Every value is
encoded as one 32-byte ABI word: addresses left-padded from 20 bytes,
unsigned integers big-endian, strings replaced by their keccak hash.
The resulting digest is what the exchange contract recovers the signer
from, so field order and widths must match the contract exactly.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from eth_abi import encode
from web3 import Web3

from .errors import EncodingError

EIP712_PREFIX = b"\x19\x01"


def keccak(data: bytes) -> bytes:
    return bytes(Web3.keccak(primitive=data))


@dataclass(frozen=True)
class StructType:
    """An EIP-712 struct definition."""
    name: str
    fields: Tuple[Tuple[str, str], ...]

    @property
    def encode_type(self) -> str:
        members = ",".join(f"{typ} {name}" for name, typ in self.fields)
        return f"{self.name}({members})"

    @property
    def type_hash(self) -> bytes:
        return keccak(self.encode_type.encode())

    def hash_struct(self, values: Dict[str, Any]) -> bytes:
        types = ["bytes32"]
        encoded = [self.type_hash]
        for name, typ in self.fields:
            if name not in values:
                raise EncodingError(name, "missing value")
            abi_type, value = encode_field(name, typ, values[name])
            types.append(abi_type)
            encoded.append(value)
        return keccak(encode(types, encoded))

    def as_json_types(self) -> List[Dict[str, str]]:
        """Field list in the JSON shape wallets and eth-account expect."""
        return [{"name": name, "type": typ} for name, typ in self.fields]


def encode_field(name: str, typ: str, value: Any) -> Tuple[str, Any]:
    """Map one field to the ABI type/value of its 32-byte word."""
    if typ == "string":
        if not isinstance(value, str):
            raise EncodingError(name, f"expected str, got {type(value).__name__}")
        return "bytes32", keccak(value.encode("utf-8"))

    if typ == "address":
        if not isinstance(value, str) or not Web3.is_address(value):
            raise EncodingError(name, f"not a valid 20-byte address: {value!r}")
        return "address", Web3.to_checksum_address(value)

    if typ.startswith("uint"):
        bits = int(typ[4:] or 256)
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(name, f"expected int, got {type(value).__name__}")
        if value < 0:
            raise EncodingError(name, f"negative value {value} for {typ}")
        if value >= 2 ** bits:
            raise EncodingError(name, f"value overflows {typ}")
        return typ, value

    raise EncodingError(name, f"unsupported type {typ}")


DOMAIN_WITH_CONTRACT = StructType(
    "EIP712Domain",
    (
        ("name", "string"),
        ("version", "string"),
        ("chainId", "uint256"),
        ("verifyingContract", "address"),
    ),
)

DOMAIN_WITHOUT_CONTRACT = StructType(
    "EIP712Domain",
    (
        ("name", "string"),
        ("version", "string"),
        ("chainId", "uint256"),
    ),
)


@dataclass(frozen=True)
class Domain:
    """Typed-data domain. ``verifying_contract`` is optional."""
    name: str
    version: str
    chain_id: int
    verifying_contract: Optional[str] = None

    @property
    def struct_type(self) -> StructType:
        if self.verifying_contract is None:
            return DOMAIN_WITHOUT_CONTRACT
        return DOMAIN_WITH_CONTRACT

    def as_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "version": self.version, "chainId": self.chain_id}
        if self.verifying_contract is not None:
            data["verifyingContract"] = self.verifying_contract
        return data

    def separator(self) -> bytes:
        return self.struct_type.hash_struct(self.as_dict())


def typed_data_digest(domain: Domain, struct: StructType, values: Dict[str, Any]) -> bytes:
    """keccak256(0x1901 || domainSeparator || hashStruct(message))."""
    return keccak(EIP712_PREFIX + domain.separator() + struct.hash_struct(values))


def full_message(domain: Domain, struct: StructType, values: Dict[str, Any]) -> Dict[str, Any]:
    """The same typed data as a JSON document (``eth_signTypedData_v4`` shape)."""
    return {
        "types": {
            "EIP712Domain": domain.struct_type.as_json_types(),
            struct.name: struct.as_json_types(),
        },
        "primaryType": struct.name,
        "domain": domain.as_dict(),
        "message": dict(values),
    }
