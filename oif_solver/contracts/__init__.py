"""
Contract ABI registry and call encoding.
"""
from .abi import AbiRegistry, ContractAbi
from .encoding import CallEncoder, FillEncoder, FinalizeEncoder, Operation, OperationEncoder

__all__ = [
    "AbiRegistry",
    "CallEncoder",
    "ContractAbi",
    "FillEncoder",
    "FinalizeEncoder",
    "Operation",
    "OperationEncoder",
]
