from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional


class StoreCheckoutIn(BaseModel):
    # Custom field values arrive as extra top-level keys merged in by the browser agent.
    model_config = ConfigDict(extra="allow")

    billing_address: Dict[str, Any] = Field(default_factory=dict)
    shipping_address: Dict[str, Any] = Field(default_factory=dict)
    customer_note: Optional[str] = None
    payment_method: Optional[str] = None
