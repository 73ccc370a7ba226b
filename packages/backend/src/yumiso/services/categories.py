"""Grocery category detection for manually added items.

Learn: a keyword table, not a classifier. The first category with a
keyword contained in the lower-cased name wins, so more specific
categories are listed before broader ones.
"""

from typing import Iterable

DEFAULT_CATEGORY = "Autres"

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Fruits & Légumes": (
        "tomate", "carotte", "oignon", "ail", "poivron", "salade", "laitue", "chou",
        "courgette", "aubergine", "épinard", "brocoli", "pomme de terre", "patate",
        "pomme", "poire", "banane", "orange", "citron", "fraise", "avocat", "céleri",
        "concombre", "champignon", "poireau", "haricot vert", "petit pois",
    ),
    "Viandes & Poissons": (
        "viande", "boeuf", "veau", "porc", "agneau", "poulet", "dinde", "canard",
        "steak", "côte", "escalope", "filet", "jambon", "lard", "bacon", "saucisse",
        "poisson", "saumon", "thon", "cabillaud", "crevette", "gambas",
    ),
    "Produits Laitiers": (
        "lait", "fromage", "yaourt", "crème", "beurre", "oeuf", "œuf", "mozzarella",
        "parmesan", "gruyère", "emmental", "camembert", "chèvre", "feta",
    ),
    "Pain & Boulangerie": (
        "pain", "baguette", "brioche", "croissant", "pain de mie", "toast",
    ),
    "Épicerie": (
        "pâtes", "riz", "semoule", "quinoa", "lentilles", "pois chiche", "farine",
        "sucre", "sel", "huile", "vinaigre", "conserve", "sauce", "épice",
    ),
    "Boissons": (
        "eau", "jus", "soda", "coca", "thé", "café", "vin", "bière",
    ),
}


def categorize_ingredient(name: str) -> str:
    lowered = name.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def clean_names(names: Iterable[str]) -> list[str]:
    """Trim names and drop blanks, keeping order."""
    return [n.strip() for n in names if n and n.strip()]
