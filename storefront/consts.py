from enum import Enum

from storefront.config import LANG


class Collections(str, Enum):
    CUSTOMERS = "customers"
    ORDERS = "orders"
    PRODUCTS = "products"
    CATEGORIES = "categories"

    def for_lang(self, lang: str = LANG) -> str:
        # Collections localisées: products_en, categories_fr, ...
        return f"{self.value}_{lang}"


class OrderStatus(str, Enum):
    ORDERED = "Ordered"


# Identifiant de catégorie utilisable dans une URL (slug)
URL_REGEX = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
