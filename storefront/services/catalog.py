"""
Product catalog and account lookups
Read-only collaborators of the cart and order services
"""

from typing import List
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.exceptions import NotFoundException
from storefront.models import Product, User

class ProductCatalog:
    """Product lookup by numeric id"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_product(self, product_id: int) -> Product:
        """
        Get an available product

        Raises:
            NotFoundException: If the product does not exist or is unavailable
        """
        result = await self.db.execute(
            select(Product).where(Product.id == product_id)
        )
        product = result.scalar_one_or_none()

        if not product or not product.is_available:
            raise NotFoundException("Product not found", error_code="PRODUCT_NOT_FOUND")

        return product

    async def find_product(self, product_id: int):
        """Like get_product but returns None instead of raising"""
        result = await self.db.execute(
            select(Product).where(Product.id == product_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def available_sizes(product: Product) -> List[str]:
        return list(product.sizes or settings.DEFAULT_PRODUCT_SIZES)

class UserStore:
    """Account lookup for profile fields"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id) -> User:
        """
        Get an active user

        Raises:
            NotFoundException: If the user does not exist or is inactive
        """
        if not isinstance(user_id, uuid.UUID):
            try:
                user_id = uuid.UUID(str(user_id))
            except ValueError:
                raise NotFoundException("User not found", error_code="USER_NOT_FOUND")

        user = await self.db.get(User, user_id)
        if not user or not user.is_active:
            raise NotFoundException("User not found", error_code="USER_NOT_FOUND")
        return user
