"""
Tests for categories.py: keyword scoring against the dental taxonomy.
"""

from storecrawler.categories import OTHERS_SLUG, TAXONOMY, CategoryClassifier, category_tree, search_text
from storecrawler.models import CategoryAssignment, Platform, ProductRecord


def product(name, description="", brand=None, specifications=None):
    return ProductRecord(
        name=name,
        link="https://shop.cl/producto/x",
        site="shop",
        platform=Platform.WOOCOMMERCE,
        description=description,
        brand=brand,
        specifications=specifications,
    )


# ====================================================================
# 1. Scoring
# ====================================================================

class TestClassify:

    def test_ranked_by_score(self):
        record = product("Bracket Roth slot 022", description="Bracket autoligado")
        assert CategoryClassifier().classify(record) == [
            CategoryAssignment("orthodontics-brackets", 5),
            CategoryAssignment("orthodontics", 4),
        ]

    def test_whole_words_only(self):
        assert CategoryClassifier().slugs(product("Brackets cerámicos")) == [OTHERS_SLUG]

    def test_nothing_matches(self):
        assert CategoryClassifier().classify(product("Espejo bucal")) == [CategoryAssignment(OTHERS_SLUG, 0)]

    def test_subcategories_need_a_scoring_parent(self):
        slugs = CategoryClassifier().slugs(product("Arco niti acero"))
        assert slugs == ["orthodontics-wires", "orthodontics"]
        assert "endodontics-files" not in slugs

    def test_ties_keep_taxonomy_order(self):
        slugs = CategoryClassifier().slugs(product("Resina alginato"))
        assert slugs == ["restorative", "restorative-composites", "impression", "impression-alginates"]

    def test_case_insensitive(self):
        slugs = [a.slug for a in CategoryClassifier().classify_text("BRACKET")]
        assert "orthodontics" in slugs

    def test_specifications_are_searched(self):
        record = product("Producto X", specifications={"Tipo": "Cemento"})
        assert CategoryClassifier().slugs(record) == ["restorative", "restorative-cements"]

    def test_search_text(self):
        record = product("Lima K", description="Acero", brand="Dentsply", specifications={"Largo": "25 mm"})
        assert search_text(record) == 'lima k acero dentsply {"largo": "25 mm"}'


# ====================================================================
# 2. Category rows
# ====================================================================

class TestCategoryTree:

    def test_rows(self):
        rows = list(category_tree())
        assert rows[0] == ("orthodontics", "Ortodoncia", None)
        assert ("orthodontics-brackets", "Brackets", "orthodontics") in rows
        assert ("surgical-instruments", "Instrumental", "surgical") in rows
        assert rows[-1] == (OTHERS_SLUG, "Otros", None)
        expected = len(TAXONOMY) + sum(len(c.subcategories) for c in TAXONOMY) + 1
        assert len(rows) == expected

    def test_parents_before_children(self):
        seen = set()
        for slug, _, parent in category_tree():
            if parent is not None:
                assert parent in seen
            seen.add(slug)
