"""
pawmatch/api/consumables.py

Consumable balances and credited purchases.

Purchases are posted after the payment provider has authorized them; the
event_id makes replays of the same purchase credit nothing.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from pawmatch.core.auth import get_current_user_id
from pawmatch.core.errors import error_from_result
from pawmatch.features.consumables.service import get_my_consumables, purchase_consumable

router = APIRouter(prefix="/v1/consumables", tags=["consumables"])


class PurchaseRequest(BaseModel):
    kind: str
    quantity: int = Field(..., description="Units credited to the purchased allotment")
    event_id: Optional[str] = None

    @field_validator("event_id")
    @classmethod
    def _trim(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


@router.get("")
def list_consumables(user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    balances = get_my_consumables(user_id)
    return {"data": [balance.model_dump(mode="json") for balance in balances]}


@router.post("/purchase")
def post_purchase(body: PurchaseRequest, user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    result = purchase_consumable(user_id, body.kind, body.quantity, event_id=body.event_id)
    if not result.ok:
        raise error_from_result(result.error)
    return {"data": result.model_dump(mode="json")}
