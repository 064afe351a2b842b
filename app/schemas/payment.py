from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class PaymentIntentRequest(BaseModel):
    """Either debtId or email must be present."""
    model_config = ConfigDict(populate_by_name=True)

    debt_id: Optional[str] = Field(default=None, alias="debtId")
    email: Optional[EmailStr] = None


class PaymentIntentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    session_id: str = Field(serialization_alias="sessionId")
    redirect_url: str = Field(serialization_alias="redirectUrl")


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str
