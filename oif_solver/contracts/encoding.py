"""
Call data encoding for settlement contract operations.

Encoders are pure: the same order always produces the same bytes and no
network access happens here.
"""
import logging
from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple

from eth_abi import encode as abi_encode
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_utils import is_address, keccak, to_checksum_address

from oif_solver.contracts.abi import AbiRegistry
from oif_solver.exceptions import EncodingError
from oif_solver.orders.models import MandateOutput, Order

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Contract operations the solver performs on an order."""
    FILL = "fill"
    FINALIZE = "finalize"


# ============ Field helpers ============

def hex_to_bytes(value: str, field_name: str) -> bytes:
    if not isinstance(value, str) or not value.startswith("0x"):
        raise EncodingError(f"{field_name} must be 0x-prefixed hex, got {value!r}")
    try:
        return bytes.fromhex(value[2:])
    except ValueError:
        raise EncodingError(f"{field_name} is not valid hex: {value!r}") from None


def to_bytes32(value: str, field_name: str) -> bytes:
    """Decode a 32-byte hex value, left-padding a 20-byte address."""
    raw = hex_to_bytes(value, field_name)
    if len(raw) == 20:
        return raw.rjust(32, b"\x00")
    if len(raw) != 32:
        raise EncodingError(f"{field_name} must be 20 or 32 bytes, got {len(raw)}")
    return raw


def to_address(value: str, field_name: str) -> str:
    if not is_address(value):
        raise EncodingError(f"{field_name} is not an address: {value!r}")
    return to_checksum_address(value)


def check_uint(value: int, bits: int, field_name: str) -> int:
    limit = 2**bits - 1
    if not isinstance(value, int) or value < 0 or value > limit:
        raise EncodingError(f"{field_name}={value!r} does not fit in uint{bits}")
    return value


def order_id_to_bytes32(order_id: str) -> bytes:
    return keccak(text=order_id)


def output_tuple(output: MandateOutput, index: int = 0) -> Tuple:
    prefix = f"outputs[{index}]"
    return (
        to_bytes32(output.remote_oracle, f"{prefix}.remote_oracle"),
        to_bytes32(output.remote_filler, f"{prefix}.remote_filler"),
        check_uint(output.chain_id, 256, f"{prefix}.chain_id"),
        to_bytes32(output.token, f"{prefix}.token"),
        check_uint(output.amount, 256, f"{prefix}.amount"),
        to_bytes32(output.recipient, f"{prefix}.recipient"),
        hex_to_bytes(output.remote_call, f"{prefix}.remote_call"),
        hex_to_bytes(output.fulfillment_context, f"{prefix}.fulfillment_context"),
    )


# ============ Encoders ============

class OperationEncoder(Protocol):
    """Anything that turns an order into call data for one operation."""

    def encode(self, order: Order) -> bytes:
        ...


def encode_function_call(
    registry: AbiRegistry,
    contract: str,
    function: str,
    arguments: List,
    order_id: str,
) -> bytes:
    """Selector plus ABI-encoded arguments for ``contract.function``."""
    selector = registry.get_selector(contract, function)
    types = registry.get_argument_types(contract, function)
    try:
        encoded = abi_encode(types, arguments)
    except (AbiEncodingError, TypeError, ValueError) as e:
        raise EncodingError(
            f"Failed to encode {contract}.{function} for order {order_id}: {e}"
        ) from e

    call_data = selector + encoded
    logger.debug(
        f"Encoded {contract}.{function} for order {order_id}: "
        f"{len(call_data)} bytes, selector 0x{selector.hex()}"
    )
    return call_data


class FillEncoder:
    """Encodes ``CoinFiller.fill`` for the first output of an order."""

    contract = "CoinFiller"
    function = "fill"

    def __init__(self, solver_address: str, registry: Optional[AbiRegistry] = None):
        self.registry = registry or AbiRegistry()
        self.solver_bytes32 = to_bytes32(to_address(solver_address, "solver_address"), "solver_address")

    def build_arguments(self, order: Order) -> List:
        intent = order.intent
        if not intent.outputs:
            raise EncodingError(f"Order {order.id} has no outputs to fill")
        return [
            check_uint(intent.fill_deadline, 32, "fill_deadline"),
            order_id_to_bytes32(order.id),
            output_tuple(intent.outputs[0]),
            self.solver_bytes32,
        ]

    def encode(self, order: Order) -> bytes:
        return encode_function_call(
            self.registry, self.contract, self.function, self.build_arguments(order), order.id
        )


class FinalizeEncoder:
    """
    Encodes ``SettlerCompact.finalise``.

    The signatures argument is the ABI encoding of the sponsor and allocator
    signatures; the allocator signature is empty. The fill timestamp is the
    time the fill was recorded.
    """

    contract = "SettlerCompact"
    function = "finalise"

    def __init__(self, solver_address: str, registry: Optional[AbiRegistry] = None):
        self.registry = registry or AbiRegistry()
        self.solver_bytes32 = to_bytes32(to_address(solver_address, "solver_address"), "solver_address")

    def build_arguments(self, order: Order) -> List:
        intent = order.intent
        if order.filled_at is None:
            raise EncodingError(f"Order {order.id} has no fill timestamp")
        if not intent.outputs:
            raise EncodingError(f"Order {order.id} has no outputs")

        standard_order = (
            to_address(intent.user, "user"),
            check_uint(intent.nonce, 256, "nonce"),
            check_uint(intent.origin_chain_id, 256, "origin_chain_id"),
            check_uint(intent.expires, 32, "expires"),
            check_uint(intent.fill_deadline, 32, "fill_deadline"),
            to_address(intent.local_oracle, "local_oracle"),
            [
                [check_uint(token_id, 256, "inputs.token_id"), check_uint(amount, 256, "inputs.amount")]
                for token_id, amount in intent.inputs
            ],
            [output_tuple(output, i) for i, output in enumerate(intent.outputs)],
        )
        sponsor_sig = hex_to_bytes(order.signature, "signature")
        signatures = abi_encode(["bytes", "bytes"], [sponsor_sig, b""])
        fill_timestamp = check_uint(int(order.filled_at.timestamp()), 32, "filled_at")

        return [
            standard_order,
            signatures,
            [fill_timestamp],
            [self.solver_bytes32],
            self.solver_bytes32,
            b"",
        ]

    def encode(self, order: Order) -> bytes:
        return encode_function_call(
            self.registry, self.contract, self.function, self.build_arguments(order), order.id
        )


class CallEncoder:
    """Dispatches an operation to the encoder registered for it."""

    def __init__(self, encoders: Dict[Operation, OperationEncoder]):
        self._encoders = dict(encoders)

    @classmethod
    def for_solver(cls, solver_address: str, registry: Optional[AbiRegistry] = None) -> "CallEncoder":
        registry = registry or AbiRegistry()
        return cls({
            Operation.FILL: FillEncoder(solver_address, registry),
            Operation.FINALIZE: FinalizeEncoder(solver_address, registry),
        })

    def encode(self, operation: Operation, order: Order) -> bytes:
        """
        Encode call data for ``operation`` on ``order``.

        Raises:
            EncodingError: If a value does not fit its ABI type or required
                data is missing
        """
        encoder = self._encoders.get(operation)
        if encoder is None:
            raise EncodingError(f"No encoder registered for {operation.value}")
        return encoder.encode(order)
