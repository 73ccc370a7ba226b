"""Ingredient categorisation tests."""

import pytest

from yumiso.services.categories import DEFAULT_CATEGORY, categorize_ingredient, clean_names


@pytest.mark.parametrize("name,category", [
    ("Tomates", "Fruits & Légumes"),
    ("2 carottes", "Fruits & Légumes"),
    ("Filet de saumon", "Viandes & Poissons"),
    ("LAIT demi-écrémé", "Produits Laitiers"),
    ("Baguette tradition", "Pain & Boulangerie"),
    ("Riz basmati", "Épicerie"),
    ("Jus de pomme", "Fruits & Légumes"),
    ("Papier toilette", DEFAULT_CATEGORY),
])
def test_categorize_ingredient(name, category):
    assert categorize_ingredient(name) == category


def test_clean_names_trims_and_drops_blanks():
    assert clean_names(["  Lait ", "", "   ", "Riz"]) == ["Lait", "Riz"]
