"""Fuel product catalogue maintenance (admin)."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.domain.errors import ConflictError, NotFoundError
from petrotech.infrastructure.models import ProductModel
from petrotech.infrastructure.repositories import ProductRepository

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ProductRepository(session)

    async def get(self, product_id: int) -> ProductModel:
        product = await self.repo.get_by_id(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    async def list_all(self) -> list[ProductModel]:
        return await self.repo.list_all()

    async def create(self, **fields) -> ProductModel:
        product = await self.repo.create(ProductModel(**fields))
        logger.info("Product %d created at %.4f/%s", product.id, product.price_per_liter, product.unit)
        return product

    async def update(self, product_id: int, **changes) -> ProductModel:
        """Price changes apply to new orders only; placed orders keep their unit price."""
        product = await self.get(product_id)
        for name, value in changes.items():
            setattr(product, name, value)
        await self.session.flush()
        logger.info("Product %d updated: %s", product.id, sorted(changes))
        return product

    async def delete(self, product_id: int) -> None:
        product = await self.get(product_id)
        if await self.repo.in_use(product.id):
            raise ConflictError("Product appears on orders; mark it unavailable instead")
        await self.repo.delete(product)
        logger.info("Product %d deleted", product_id)
