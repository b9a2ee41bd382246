from fastapi import APIRouter
from bazaar.api import version_prefix
from bazaar.common.routes import home_router
from bazaar.orders.routes import orders_router, payments_router
from bazaar.payouts.routes import payouts_router, payouts_admin_router
from bazaar.wallets.routes import wallets_router, wallets_admin_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(orders_router, prefix="/orders", tags=["orders"])
public_routers.include_router(payments_router, prefix="/payments", tags=["payments"])
public_routers.include_router(payouts_router, prefix="/payouts", tags=["payouts"])
public_routers.include_router(wallets_router, prefix="/wallets", tags=["wallets"])
public_routers.include_router(home_router, tags=["home"])

#--------------------------------------------------------------------------------------------------------

admin_routers = APIRouter(prefix=f"{version_prefix}/admin")

admin_routers.include_router(payouts_admin_router, prefix="/payouts", tags=["payouts-admin"])
admin_routers.include_router(wallets_admin_router, prefix="/wallets", tags=["wallets-admin"])
