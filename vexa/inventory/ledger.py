from typing import Optional
from sqlalchemy import and_, select, update
from vexa.common.custom_exceptions import BadRequestError, InsufficientStockError, NotFoundError
from vexa.schema.full_schema import Product, ProductVariant
from vexa.inventory.constants import logger

# Stock lives at two granularities: the variant row and the product roll-up.
# Both are checked and moved together inside the caller's transaction; nothing here commits.


async def _locked_stock(session, product_id: int, variant_id: Optional[int]):
    stmt = select(Product.stock).where(Product.id == product_id).with_for_update()
    res = await session.execute(stmt)
    product_stock = res.scalar_one_or_none()
    if product_stock is None:
        raise NotFoundError("Product not found")

    variant_stock = None
    if variant_id is not None:
        stmt = (
            select(ProductVariant.stock)
            .where(ProductVariant.id == variant_id, ProductVariant.product_id == product_id)
            .with_for_update()
        )
        res = await session.execute(stmt)
        variant_stock = res.scalar_one_or_none()
        if variant_stock is None:
            raise NotFoundError("Variant not found")

    return product_stock, variant_stock


async def reserve(session, product_id: int, variant_id: Optional[int], quantity: int) -> None:
    """Take `quantity` units off the variant (if any) and its product, or fail leaving both untouched."""
    if quantity <= 0:
        raise BadRequestError("Quantity must be greater than 0")

    product_stock, variant_stock = await _locked_stock(session, product_id, variant_id)

    available = product_stock if variant_stock is None else min(product_stock, variant_stock)
    if available < quantity:
        logger.info("inventory.reserve.insufficient", extra={
            "product_id": product_id, "variant_id": variant_id,
            "requested": quantity, "available": available,
        })
        raise InsufficientStockError(product_id, variant_id, quantity, available)

    # rows are locked above; the stock guard keeps the invariant on backends without row locks
    if variant_id is not None:
        res = await session.execute(
            update(ProductVariant)
            .where(and_(ProductVariant.id == variant_id, ProductVariant.stock >= quantity))
            .values(stock=ProductVariant.stock - quantity)
        )
        if res.rowcount != 1:
            raise InsufficientStockError(product_id, variant_id, quantity, 0)

    res = await session.execute(
        update(Product)
        .where(and_(Product.id == product_id, Product.stock >= quantity))
        .values(stock=Product.stock - quantity)
    )
    if res.rowcount != 1:
        raise InsufficientStockError(product_id, variant_id, quantity, 0)

    logger.debug("inventory.reserved", extra={"product_id": product_id, "variant_id": variant_id, "quantity": quantity})


async def release(session, product_id: int, variant_id: Optional[int], quantity: int) -> None:
    """Give `quantity` units back to the variant (if any) and its product. Never fails."""
    if quantity <= 0:
        return

    if variant_id is not None:
        await session.execute(
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .values(stock=ProductVariant.stock + quantity)
        )

    await session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
    )

    logger.debug("inventory.released", extra={"product_id": product_id, "variant_id": variant_id, "quantity": quantity})
