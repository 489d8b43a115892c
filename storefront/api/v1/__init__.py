"""API v1 routes aggregation"""

from fastapi import APIRouter

from .cart.router import router as cart_router
from .orders.router import router as orders_router
from .admin.router import router as admin_router
from .notifications.router import router as notifications_router

# Create v1 router
api_router = APIRouter()

# Include all routers
api_router.include_router(cart_router, prefix="/cart", tags=["Cart"])
api_router.include_router(orders_router, prefix="/orders", tags=["Orders"])
api_router.include_router(admin_router, prefix="/admin", tags=["Admin"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

# Export router
router = api_router
