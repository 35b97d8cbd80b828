# storefront/catalog_routes.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.database import get_db
from storefront.db.functions import get_product_by_id, search_products
from storefront.db.schemas import ProductPage
from storefront.errors import NotFoundError

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/products")
async def read_products(
    q: str = "",
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=12, ge=1, le=100, alias="pageSize"),
    db: AsyncSession = Depends(get_db),
):
    products, total = await search_products(db, q, page, page_size)
    return ProductPage(products=products, total=total, page=page, page_size=page_size).model_dump(mode="json", by_alias=True)


@router.get("/products/{product_id}")
async def read_product(product_id: int, db: AsyncSession = Depends(get_db)):
    product = await get_product_by_id(db, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product.model_dump(mode="json")
