"""
Request models for the solver API.
"""
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from oif_solver.orders.models import MandateOutput, StandardOrder


class MandateOutputRequest(BaseModel):
    """One output of a submitted order."""
    remote_oracle: str
    remote_filler: str
    chain_id: int = Field(..., ge=0)
    token: str
    amount: int = Field(..., ge=0)
    recipient: str
    remote_call: Optional[str] = None
    fulfillment_context: Optional[str] = None

    def to_output(self) -> MandateOutput:
        return MandateOutput(
            remote_oracle=self.remote_oracle,
            remote_filler=self.remote_filler,
            chain_id=self.chain_id,
            token=self.token,
            amount=self.amount,
            recipient=self.recipient,
            remote_call=self.remote_call or "0x",
            fulfillment_context=self.fulfillment_context or "0x",
        )


class StandardOrderRequest(BaseModel):
    """
    The signed intent.

    Integers may be sent as JSON numbers or decimal strings.
    """
    user: str
    nonce: int = Field(..., ge=0)
    origin_chain_id: int = Field(..., ge=0)
    destination_chain_id: int = Field(..., ge=0)
    expires: int = Field(..., ge=0)
    fill_deadline: int = Field(..., ge=0)
    local_oracle: str
    inputs: List[Tuple[int, int]] = Field(default_factory=list)
    outputs: List[MandateOutputRequest] = Field(default_factory=list)

    def to_intent(self) -> StandardOrder:
        return StandardOrder(
            user=self.user,
            nonce=self.nonce,
            origin_chain_id=self.origin_chain_id,
            destination_chain_id=self.destination_chain_id,
            expires=self.expires,
            fill_deadline=self.fill_deadline,
            local_oracle=self.local_oracle,
            inputs=tuple((token_id, amount) for token_id, amount in self.inputs),
            outputs=tuple(output.to_output() for output in self.outputs),
        )


class SubmitOrderRequest(BaseModel):
    """Request to submit a new order."""
    order: StandardOrderRequest
    signature: str = Field(..., min_length=4)
