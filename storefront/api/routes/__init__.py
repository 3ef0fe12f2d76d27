from . import abandoned_carts, auth, contact, inventory, orders, products, shipping

public_routers = [
    products.router,
    orders.router,
    contact.router,
    shipping.router,
    inventory.router,
    abandoned_carts.router,
    auth.router,
]

admin_routers = [
    products.admin_router,
    orders.admin_router,
    contact.admin_router,
    inventory.admin_router,
    abandoned_carts.admin_router,
]
