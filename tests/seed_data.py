import os
import uuid
from types import SimpleNamespace
from jose import jwt
from sqlalchemy import select

from bazaar.orders.utils import generate_order_number
from bazaar.schema.full_schema import (OrderStatus, Orders, PaymentMethod, PaymentStatus, Product, Shop,
                                       UserRoleName, Users)
from bazaar.user.dependencies import Actor

ADDRESS = {
    "street": "12 MG Road",
    "city": "Bengaluru",
    "state": "KA",
    "postal_code": "560001",
    "country": "IN",
    "phone": "9876543210",
}


async def make_user(session, role: UserRoleName, name: str, public_id=None) -> Users:
    user = Users(email=f"{name}@bazaar.test", name=name, role=role.value)
    if public_id is not None:
        user.public_id = public_id
    session.add(user)
    await session.flush()
    return user


async def make_shop(session, owner: Users, name: str = "Green Grocers") -> Shop:
    shop = Shop(owner_id=owner.id, name=name)
    session.add(shop)
    await session.flush()
    return shop


async def make_product(session, shop: Shop, name: str, price: int, stock: int, **kw) -> Product:
    product = Product(shop_id=shop.id, name=name, base_price=price, stock_qty=stock, **kw)
    session.add(product)
    await session.flush()
    return product


async def make_order_row(session, buyer: Users, shop: Shop, total: int, shipping: int, courier: Users = None,
                         status: str = OrderStatus.DELIVERED.value,
                         payment_status: str = PaymentStatus.PAID.value) -> Orders:
    """Inserts an order directly, for settlement tests that need exact amounts."""
    order = Orders(
        order_number=generate_order_number(),
        buyer_id=buyer.id,
        shop_id=shop.id,
        courier_id=courier.id if courier else None,
        status=status,
        payment_status=payment_status,
        payment_method=PaymentMethod.UPI.value,
        subtotal=total - shipping,
        shipping_cost=shipping,
        total_amount=total,
        shipping_address=ADDRESS,
    )
    session.add(order)
    await session.flush()
    return order


async def seed_marketplace(session) -> SimpleNamespace:
    platform = await make_user(session, UserRoleName.ADMIN, "platform",
                               public_id=uuid.UUID(os.environ["PLATFORM_ACCOUNT_ID"]))
    admin = await make_user(session, UserRoleName.ADMIN, "ops")
    seller = await make_user(session, UserRoleName.SELLER, "seller")
    other_seller = await make_user(session, UserRoleName.SELLER, "seller2")
    customer = await make_user(session, UserRoleName.CUSTOMER, "customer")
    courier = await make_user(session, UserRoleName.COURIER, "courier")
    other_courier = await make_user(session, UserRoleName.COURIER, "courier2")

    shop = await make_shop(session, seller)
    other_shop = await make_shop(session, other_seller, name="Corner Store")

    mango = await make_product(session, shop, "Mango box", price=450, stock=10)
    honey = await make_product(session, shop, "Forest honey", price=40, stock=2)
    retired = await make_product(session, shop, "Old jam", price=90, stock=5, status="discontinued")
    foreign = await make_product(session, other_shop, "Tea leaves", price=200, stock=5)

    return SimpleNamespace(
        platform=platform, admin=admin, seller=seller, other_seller=other_seller, customer=customer,
        courier=courier, other_courier=other_courier, shop=shop, other_shop=other_shop,
        mango=mango, honey=honey, retired=retired, foreign=foreign,
    )


def actor_for(user: Users) -> Actor:
    return Actor(user_id=user.id, role=user.role, public_id=user.public_id)


def auth_headers(user: Users) -> dict:
    token = jwt.encode({"sub": str(user.public_id), "role": user.role},
                       os.environ["JWT_SECRET"], algorithm=os.environ["JWT_ALGO"])
    return {"Authorization": f"Bearer {token}"}


async def fetch(session, model, row_id):
    """Reads a row straight from the database, bypassing the identity map."""
    res = await session.execute(
        select(model).where(model.id == row_id).execution_options(populate_existing=True)
    )
    return res.scalar_one()
