"""
Intent validation for order submission.
"""
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import List, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_address, keccak

from oif_solver.orders.models import StandardOrder

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^0x([0-9a-fA-F]{2})*$")

UINT32_MAX = 2**32 - 1
UINT256_MAX = 2**256 - 1


def is_hex(value: str) -> bool:
    return isinstance(value, str) and bool(_HEX_RE.match(value))


def is_bytes32_or_address(value: str) -> bool:
    if not is_hex(value):
        return False
    return len(value) in (42, 66)


@dataclass
class ValidationResult:
    """Result of intent validation."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    fields: List[str] = field(default_factory=list)

    def add_error(self, field_name: str, error: str) -> None:
        self.fields.append(field_name)
        self.errors.append(error)
        self.is_valid = False

    @property
    def first_field(self) -> Optional[str]:
        return self.fields[0] if self.fields else None

    @property
    def first_error(self) -> Optional[str]:
        return self.errors[0] if self.errors else None


class SignatureVerifier:
    """
    Decides whether a maker signature is acceptable.

    The base verifier only checks that the signature is well-formed hex.
    """

    def verify(self, intent: StandardOrder, signature: str) -> bool:
        return is_hex(signature) and len(signature) > 2


class RecoveringSignatureVerifier(SignatureVerifier):
    """
    Verifies that the signature recovers to the order's maker.

    The signed message is the keccak digest of the canonical JSON form of the
    intent, signed as an EIP-191 personal message.
    """

    def verify(self, intent: StandardOrder, signature: str) -> bool:
        if not super().verify(intent, signature):
            return False
        try:
            message = encode_defunct(primitive=self.digest(intent))
            recovered = Account.recover_message(message, signature=signature)
        except Exception as e:
            logger.debug(f"Signature recovery failed: {e}")
            return False
        return recovered.lower() == intent.user.lower()

    @staticmethod
    def digest(intent: StandardOrder) -> bytes:
        payload = json.dumps(intent.to_dict(), sort_keys=True, separators=(",", ":"))
        return keccak(text=payload)


class IntentValidator:
    """
    Validates intents before they enter the store.

    Checks:
    - Address and hex formats
    - Integer widths used by the settlement contracts
    - Expiry against the current time
    - Input and output presence
    - Maker signature
    """

    def __init__(self, verifier: Optional[SignatureVerifier] = None):
        self.verifier = verifier or SignatureVerifier()

    def validate(
        self,
        intent: StandardOrder,
        signature: str,
        now: Optional[int] = None,
    ) -> ValidationResult:
        """
        Run all validations.

        Args:
            intent: Intent to validate
            signature: Maker signature as 0x-hex
            now: Current unix time (defaults to the wall clock)

        Returns:
            ValidationResult with every problem found
        """
        now = int(time.time()) if now is None else now
        result = ValidationResult()

        if not is_address(intent.user):
            result.add_error("user", f"not an address: {intent.user!r}")
        if not is_address(intent.local_oracle):
            result.add_error("local_oracle", f"not an address: {intent.local_oracle!r}")

        for name in ("nonce", "origin_chain_id", "destination_chain_id"):
            value = getattr(intent, name)
            if not isinstance(value, int) or not 0 <= value <= UINT256_MAX:
                result.add_error(name, f"must be a uint256, got {value!r}")

        for name in ("expires", "fill_deadline"):
            value = getattr(intent, name)
            if not isinstance(value, int) or not 0 <= value <= UINT32_MAX:
                result.add_error(name, f"must be a uint32 timestamp, got {value!r}")

        if isinstance(intent.expires, int) and intent.expires <= now:
            result.add_error("expires", f"order expired at {intent.expires}")

        if not intent.inputs:
            result.add_error("inputs", "at least one input is required")
        for token_id, amount in intent.inputs:
            if not 0 <= token_id <= UINT256_MAX or not 0 <= amount <= UINT256_MAX:
                result.add_error("inputs", "input values must be uint256")
                break

        if not intent.outputs:
            result.add_error("outputs", "at least one output is required")
        for output in intent.outputs:
            bad = [
                name for name in ("remote_oracle", "remote_filler", "token", "recipient")
                if not is_bytes32_or_address(getattr(output, name))
            ]
            if bad:
                result.add_error("outputs", f"malformed output fields: {', '.join(bad)}")
                break
            if not is_hex(output.remote_call) or not is_hex(output.fulfillment_context):
                result.add_error("outputs", "remote_call and fulfillment_context must be hex")
                break
            if not 0 <= output.amount <= UINT256_MAX:
                result.add_error("outputs", "output amount must be a uint256")
                break

        if not self.verifier.verify(intent, signature):
            result.add_error("signature", "signature rejected")

        return result
