"""Customer order routes"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.database import get_db
from storefront.core.security import get_current_user
from .checkout import CheckoutService
from .schemas import CheckoutRequest, CheckoutResponse, OrderListResponse, OrderResponse
from .services import OrderService

router = APIRouter()

@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    checkout_data: CheckoutRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Check out the cart"""
    service = CheckoutService(db)
    address = checkout_data.address
    if not isinstance(address, str):
        address = address.model_dump()

    order = await service.checkout(
        user_id=current_user["id"],
        shipping_address=address,
        phone=checkout_data.phone,
        payment_method=checkout_data.payment_method,
        transaction_id=checkout_data.transaction_id
    )
    return CheckoutResponse(message="Order placed successfully", order=order)

@router.get("/mine", response_model=OrderListResponse)
async def my_orders(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the current user's orders"""
    service = OrderService(db)
    orders = await service.list_user_orders(current_user["id"])
    return OrderListResponse(orders=[OrderResponse.model_validate(o) for o in orders])
