"""
Registry of the settlement contract functions and events the solver uses.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from eth_utils import function_signature_to_4byte_selector

from oif_solver.exceptions import EncodingError

MANDATE_OUTPUT_TUPLE = "(bytes32,bytes32,uint256,bytes32,uint256,bytes32,bytes,bytes)"
STANDARD_ORDER_TUPLE = (
    f"(address,uint256,uint256,uint32,uint32,address,uint256[2][],{MANDATE_OUTPUT_TUPLE}[])"
)


@dataclass
class ContractAbi:
    """Function and event signatures for one contract."""
    name: str
    functions: Dict[str, str] = field(default_factory=dict)
    events: Dict[str, str] = field(default_factory=dict)


DEFAULT_CONTRACTS = [
    ContractAbi(
        name="SettlerCompact",
        functions={
            "finalise": f"finalise({STANDARD_ORDER_TUPLE},bytes,uint32[],bytes32[],bytes32,bytes)",
        },
        events={
            "Finalised": "Finalised(bytes32 indexed orderId, bytes32 indexed solver, bytes32 destination)",
        },
    ),
    ContractAbi(
        name="CoinFiller",
        functions={
            "fill": f"fill(uint32,bytes32,{MANDATE_OUTPUT_TUPLE},bytes32)",
        },
        events={
            "OutputFilled": (
                "OutputFilled(bytes32 indexed orderId, bytes32 solver, uint32 timestamp, "
                f"{MANDATE_OUTPUT_TUPLE})"
            ),
        },
    ),
    ContractAbi(
        name="TheCompact",
        functions={
            "deposit": "deposit(address,uint256)",
            "withdraw": "withdraw(address,uint256)",
        },
        events={
            "Deposit": "Deposit(address indexed user, address indexed token, uint256 amount)",
        },
    ),
]


def split_signature(signature: str) -> Tuple[str, List[str]]:
    """
    Split ``name(type,...)`` into the name and its top-level argument types.

    >>> split_signature("fill(uint32,(bytes32,uint256),bytes32)")
    ('fill', ['uint32', '(bytes32,uint256)', 'bytes32'])
    """
    open_at = signature.find("(")
    if open_at <= 0 or not signature.endswith(")"):
        raise EncodingError(f"Malformed function signature: {signature}")

    name = signature[:open_at]
    body = signature[open_at + 1:-1]
    types: List[str] = []
    depth = 0
    current = ""
    for char in body:
        if char in "([":
            depth += 1
        elif char in ")]":
            depth -= 1
        if char == "," and depth == 0:
            types.append(current)
            current = ""
        else:
            current += char
    if depth != 0:
        raise EncodingError(f"Unbalanced function signature: {signature}")
    if current:
        types.append(current)
    return name, types


class AbiRegistry:
    """Looks up function signatures and selectors by contract name."""

    def __init__(self, contracts: List[ContractAbi] = None):
        contracts = DEFAULT_CONTRACTS if contracts is None else contracts
        self._contracts: Dict[str, ContractAbi] = {c.name: c for c in contracts}

    def get_contract(self, contract: str) -> ContractAbi:
        try:
            return self._contracts[contract]
        except KeyError:
            raise EncodingError(f"Unknown contract: {contract}") from None

    def get_function_signature(self, contract: str, function: str) -> str:
        abi = self.get_contract(contract)
        try:
            return abi.functions[function]
        except KeyError:
            raise EncodingError(f"Unknown function {contract}.{function}") from None

    def get_argument_types(self, contract: str, function: str) -> List[str]:
        _, types = split_signature(self.get_function_signature(contract, function))
        return types

    def get_selector(self, contract: str, function: str) -> bytes:
        return function_signature_to_4byte_selector(
            self.get_function_signature(contract, function)
        )
