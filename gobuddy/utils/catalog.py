"""
Static item price catalog used when quoting errands.

The catalog is configuration, not pricing logic: unknown items simply cost 0.
"""
from decimal import Decimal
from typing import Callable, Dict, Optional

PriceLookup = Callable[[str], Decimal]

SCHOOL_MATERIALS: Dict[str, Decimal] = {
    "Yellowpad": Decimal("10"),
    "Ballpen": Decimal("10"),
}

FOOD_ITEMS: Dict[str, Dict[str, Decimal]] = {
    "Canteen": {
        "Toppings": Decimal("55"),
        "Biscuits": Decimal("10"),
        "Pansit Canton": Decimal("30"),
        "Waffles": Decimal("35"),
        "Pastel": Decimal("20"),
        "Rice Bowl": Decimal("60"),
    },
    "Drinks": {
        "Real Leaf": Decimal("30"),
        "Water (500ml)": Decimal("25"),
        "Minute Maid": Decimal("30"),
        "Kopiko Lucky Day": Decimal("30"),
    },
}

# (size, color) -> price per printed item
PRINTING_PRICES: Dict[tuple, Decimal] = {
    ("A3", "Colored"): Decimal("25"),
    ("A3", "Not Colored"): Decimal("15"),
    ("A4", "Colored"): Decimal("5"),
    ("A4", "Not Colored"): Decimal("2"),
}


def lookup_price(item_name: str) -> Decimal:
    """Price of a food or school-material item, 0 if it is not in the catalog."""
    if not item_name:
        return Decimal("0")
    name = item_name.strip()

    for items in FOOD_ITEMS.values():
        if name in items:
            return items[name]

    return SCHOOL_MATERIALS.get(name, Decimal("0"))


def printing_price(size: Optional[str], color: Optional[str]) -> Decimal:
    return PRINTING_PRICES.get((size, color), Decimal("0"))


def printing_price_lookup(size: Optional[str], color: Optional[str]) -> PriceLookup:
    """Printing jobs are priced by paper size and color, whatever the item is called."""
    price = printing_price(size, color)

    def _lookup(item_name: str) -> Decimal:
        return price

    return _lookup
