# ------ storefront/model/__init__.py ------

from .user import User, Address, RefreshToken, wishlist_items
from .category import Category, SubCategory
from .brand import Brand
from .product import Product, ProductImage
from .cart import Cart, CartItem
from .coupon import Coupon
from .order import Order, OrderItem, PAYMENT_TYPES
from .rental import RentalRequest, RENTAL_STATUSES, RETURN_CONDITIONS

__all__ = [
    "User",
    "Address",
    "RefreshToken",
    "wishlist_items",
    "Category",
    "SubCategory",
    "Brand",
    "Product",
    "ProductImage",
    "Cart",
    "CartItem",
    "Coupon",
    "Order",
    "OrderItem",
    "PAYMENT_TYPES",
    "RentalRequest",
    "RENTAL_STATUSES",
    "RETURN_CONDITIONS",
]
