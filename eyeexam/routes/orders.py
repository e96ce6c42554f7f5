from fastapi import APIRouter

from eyeexam.models.api import OrderPreviewRequest, OrderPreviewResponse
from eyeexam.services.cart import SelectionCart

router = APIRouter()


@router.post("/preview", response_model=OrderPreviewResponse)
def preview_order(request: OrderPreviewRequest) -> OrderPreviewResponse:
    """Totals for a selection; repeated ids toggle off as they would in the picker."""
    cart = SelectionCart()
    for item in request.items:
        if cart.toggle(item):
            cart.set_quantity(item.id, item.quantity)
    return OrderPreviewResponse(**cart.to_order_payload(notes=request.notes))
