"""
Catalogue endpoints
===================

GET /api/v1/products              -- available fuel products (customer prices)
GET /api/v1/products/{product_id} -- one product
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from petrotech.api.dependencies import get_db, get_pricing
from petrotech.api.middleware import limiter
from petrotech.api.schemas import ProductResponse
from petrotech.config import settings
from petrotech.domain.pricing import PricingEngine
from petrotech.infrastructure.repositories import ProductRepository

router = APIRouter(prefix="/products", tags=["products"])


def _customer_view(product, pricing: PricingEngine) -> ProductResponse:
    view = ProductResponse.model_validate(product)
    view.price_per_liter = pricing.customer_unit_price(product.price_per_liter)
    return view


@router.get("", response_model=list[ProductResponse], summary="List available products")
@limiter.limit(settings.rate_limit)
async def list_products(
    request: Request,
    db: AsyncSession = Depends(get_db),
    pricing: PricingEngine = Depends(get_pricing),
):
    products = await ProductRepository(db).list_available()
    return [_customer_view(p, pricing) for p in products]


@router.get("/{product_id}", response_model=ProductResponse, summary="Get a product")
@limiter.limit(settings.rate_limit)
async def get_product(
    request: Request,
    product_id: int,
    db: AsyncSession = Depends(get_db),
    pricing: PricingEngine = Depends(get_pricing),
):
    product = await ProductRepository(db).get_by_id(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return _customer_view(product, pricing)
