from fastapi import APIRouter
from vexa.cart.routes import carts_router
from vexa.common.constants import version_prefix
from vexa.common.routes import home_router
from vexa.coupons.routes import coupons_admin_router, coupons_router
from vexa.orders.routes import orders_admin_router, orders_router
from vexa.payments.routes import payments_router
from vexa.wishlists.routes import wishlists_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(home_router, tags=["home"])
public_routers.include_router(carts_router, prefix="/cart", tags=["cart"])
public_routers.include_router(wishlists_router, prefix="/wishlist", tags=["wishlist"])
public_routers.include_router(coupons_router, prefix="/coupons", tags=["coupons"])
public_routers.include_router(orders_router, prefix="/orders", tags=["orders"])
public_routers.include_router(payments_router, prefix="/payments", tags=["payments"])

#--------------------------------------------------------------------------------------------------------

admin_routers = APIRouter(prefix=f"{version_prefix}/admin")

admin_routers.include_router(coupons_admin_router, prefix="/coupons", tags=["coupons-admin"])
admin_routers.include_router(orders_admin_router, prefix="/orders", tags=["orders-admin"])
