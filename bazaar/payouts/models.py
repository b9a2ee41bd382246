from typing import Optional
from pydantic import BaseModel, Field
from bazaar.schema.full_schema import PayoutMethod


class PayoutRequestIn(BaseModel):
    amount: int = Field(..., gt=0, description="Amount in rs")
    payout_method: PayoutMethod
    upi_id: Optional[str] = Field(None, max_length=128)
    bank_account_number: Optional[str] = Field(None, max_length=34)
    bank_account_name: Optional[str] = Field(None, max_length=128)
    bank_ifsc: Optional[str] = Field(None, max_length=16)
    bank_name: Optional[str] = Field(None, max_length=128)

    model_config = {"extra": "forbid"}


class PayoutApproveIn(BaseModel):
    transaction_reference: Optional[str] = Field(None, max_length=128)


class PayoutRejectIn(BaseModel):
    failure_reason: Optional[str] = Field(None, max_length=500)
