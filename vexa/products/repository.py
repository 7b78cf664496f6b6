from typing import Dict, Iterable, Optional, Tuple
from sqlalchemy import select
from vexa.common.custom_exceptions import BadRequestError, NotFoundError
from vexa.schema.full_schema import Product, ProductVariant
from vexa.products.constants import logger


async def get_product(session, product_id: int) -> Product:
    product = await session.get(Product, product_id)
    if product is None:
        logger.warning("product.not_found", extra={"product_id": product_id})
        raise NotFoundError("Product not found")
    return product


async def get_variant_of(session, product_id: int, variant_id: int) -> ProductVariant:
    variant = await session.get(ProductVariant, variant_id)
    if variant is None:
        logger.warning("product.variant.not_found", extra={"product_id": product_id, "variant_id": variant_id})
        raise NotFoundError("Variant not found")
    if variant.product_id != product_id:
        raise BadRequestError("Variant does not belong to this product")
    return variant


async def ensure_purchasable(session, product_id: int, variant_id: Optional[int]) -> Tuple[Product, Optional[ProductVariant]]:
    product = await get_product(session, product_id)
    variant = None
    if variant_id is not None:
        variant = await get_variant_of(session, product_id, variant_id)
    return product, variant


async def load_catalog_rows(session, product_ids: Iterable[int], variant_ids: Iterable[int]
                            ) -> Tuple[Dict[int, Product], Dict[int, ProductVariant]]:
    """Bulk load products/variants referenced by cart or wishlist lines (one query each)."""
    product_ids = set(product_ids)
    variant_ids = set(variant_ids)
    products: Dict[int, Product] = {}
    variants: Dict[int, ProductVariant] = {}
    if product_ids:
        res = await session.execute(select(Product).where(Product.id.in_(product_ids)))
        products = {p.id: p for p in res.scalars().all()}
    if variant_ids:
        res = await session.execute(select(ProductVariant).where(ProductVariant.id.in_(variant_ids)))
        variants = {v.id: v for v in res.scalars().all()}
    return products, variants
