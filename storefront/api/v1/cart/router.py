"""Cart router: every change is mirrored into the pending order"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.database import get_db
from storefront.core.security import get_current_user
from .schemas import (
    AddToCartRequest,
    CartDetailsResponse,
    CartLineRequest,
    CartResponse,
    UpdateCartQuantityRequest,
)
from .services import CartService, CartSnapshot

router = APIRouter()

def _cart_response(message: str, snapshot: CartSnapshot) -> CartResponse:
    return CartResponse(
        message=message,
        cart=snapshot,
        total_items=sum(q for sizes in snapshot.values() for q in sizes.values())
    )

@router.get("", response_model=CartResponse)
async def get_cart(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the cart snapshot"""
    service = CartService(db)
    snapshot = await service.read(current_user["id"])
    return _cart_response("Cart retrieved", snapshot)

@router.get("/details", response_model=CartDetailsResponse)
async def get_cart_details(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the cart with product details and totals"""
    service = CartService(db)
    details = await service.get_cart_details(current_user["id"])
    return CartDetailsResponse(**details)

@router.post("/add", response_model=CartResponse)
async def add_to_cart(
    item_data: AddToCartRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Add item to cart"""
    service = CartService(db)
    snapshot = await service.add_to_cart(
        user_id=current_user["id"],
        product_id=item_data.product_id,
        size=item_data.size,
        quantity=item_data.quantity,
        payment_method=item_data.payment_method
    )
    return _cart_response("Item added to cart", snapshot)

@router.put("/quantity", response_model=CartResponse)
async def update_cart_quantity(
    update_data: UpdateCartQuantityRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Set the quantity of one cart line"""
    service = CartService(db)
    snapshot = await service.update_cart_quantity(
        user_id=current_user["id"],
        product_id=update_data.product_id,
        size=update_data.size,
        quantity=update_data.quantity,
        payment_method=update_data.payment_method
    )
    return _cart_response("Cart quantity updated", snapshot)

@router.post("/remove", response_model=CartResponse)
async def remove_from_cart(
    item_data: CartLineRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Remove item from cart"""
    service = CartService(db)
    snapshot = await service.remove_from_cart(
        user_id=current_user["id"],
        product_id=item_data.product_id,
        size=item_data.size
    )
    return _cart_response("Item removed from cart", snapshot)

@router.post("/clear", response_model=CartResponse)
async def clear_cart(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Empty the cart and cancel its pending order"""
    service = CartService(db)
    snapshot = await service.clear_cart(current_user["id"])
    return _cart_response("Cart cleared successfully", snapshot)
