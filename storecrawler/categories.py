"""
Category Classification
=======================
Keyword-scored assignment of products to the two-level dental-supply
taxonomy.

A category scores one point per whole-word, case-insensitive keyword
occurrence in the product's text (name, description, brand and the
JSON-serialized specifications). Only a category that scores is searched
for subcategories. Results are ranked by score, ties in taxonomy order;
a product nothing matches lands in ``others``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

from .models import CategoryAssignment, ProductRecord

logger = logging.getLogger(__name__)

OTHERS_SLUG = "others"
OTHERS_NAME = "Otros"


@dataclass
class TaxonomyNode:
    slug: str
    name: str
    keywords: Sequence[str]
    subcategories: List["TaxonomyNode"] = field(default_factory=list)

    _pattern: Optional[re.Pattern] = field(init=False, repr=False, default=None)

    def __post_init__(self):
        alternation = "|".join(re.escape(k.lower()) for k in self.keywords)
        self._pattern = re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE) if alternation else None

    def count(self, text: str) -> int:
        if self._pattern is None:
            return 0
        return len(self._pattern.findall(text))


def _node(slug: str, name: str, keywords: Sequence[str], **subs: Tuple[str, Sequence[str]]) -> TaxonomyNode:
    children = [TaxonomyNode(f"{slug}-{sub}", sub_name, sub_kw) for sub, (sub_name, sub_kw) in subs.items()]
    return TaxonomyNode(slug, name, keywords, children)


TAXONOMY: List[TaxonomyNode] = [
    _node(
        "orthodontics", "Ortodoncia",
        ["bracket", "ortodoncia", "autoligado", "arco", "alambre", "retenedor",
         "alineador", "elástico", "banda", "tubo", "slot"],
        brackets=("Brackets", ["bracket", "autoligado", "metalico", "ceramico", "zafiro", "slot", "roth", "mbt"]),
        wires=("Arcos y Alambres", ["arco", "alambre", "niti", "acero", "beta", "titanio"]),
        elastics=("Elásticos", ["elastico", "cadena", "ligadura", "power chain"]),
    ),
    _node(
        "surgical", "Instrumental Quirúrgico",
        ["forcep", "fórcep", "pinza", "tijera", "bisturí", "sutura", "elevador",
         "osteotomo", "cureta", "periostotomo"],
        forceps=("Fórceps", ["forcep", "fórcep", "extracción"]),
        instruments=("Instrumental", ["pinza", "tijera", "bisturí", "sutura", "elevador", "osteotomo"]),
    ),
    _node(
        "restorative", "Materiales de Restauración",
        ["resina", "composite", "ionomero", "cemento", "adhesivo", "ácido", "grabador", "amalgama"],
        composites=("Resinas y Composites", ["resina", "composite", "bulk", "fluida", "nanohíbrida"]),
        cements=("Cementos", ["cemento", "ionomero", "ionómero", "adhesivo", "provisional"]),
        acids=("Ácidos y Grabadores", ["ácido", "acido", "grabador", "fosfórico", "fluorhídrico"]),
    ),
    _node(
        "impression", "Materiales de Impresión",
        ["alginato", "silicona", "impresión", "cubeta", "registro", "mordida"],
        alginates=("Alginatos", ["alginato", "hidrocoloide"]),
        silicones=("Siliconas", ["silicona", "polivinilsiloxano", "putty", "liviana", "pesada"]),
    ),
    _node(
        "endodontics", "Endodoncia",
        ["lima", "endodoncia", "gutapercha", "resilon", "sellador", "irrigación", "hipoclorito"],
        files=("Limas", ["lima", "rotatorio", "reciprocante", "manual", "niti"]),
        obturation=("Obturación", ["gutapercha", "resilon", "sellador", "cemento"]),
    ),
    _node(
        "prevention", "Prevención e Higiene",
        ["fluoruro", "sellante", "profilaxis", "cepillo", "pasta", "hilo dental"],
        fluorides=("Fluoruros", ["fluoruro", "barniz", "gel"]),
        prophylaxis=("Profilaxis", ["profilaxis", "pasta", "pulido", "cepillo"]),
    ),
]


def search_text(record: ProductRecord) -> str:
    """Lowercased text the classifier scores against."""
    parts = [record.name, record.description, record.brand]
    if record.specifications:
        parts.append(json.dumps(record.specifications, ensure_ascii=False))
    return " ".join(p for p in parts if p).lower()


class CategoryClassifier:
    """
    Usage::

        classifier = CategoryClassifier()
        classifier.classify(record)   # [CategoryAssignment('orthodontics', 3), ...]
    """

    def __init__(self, taxonomy: Optional[List[TaxonomyNode]] = None):
        self.taxonomy = taxonomy if taxonomy is not None else TAXONOMY

    def classify_text(self, text: str) -> List[CategoryAssignment]:
        found: List[CategoryAssignment] = []
        for category in self.taxonomy:
            score = category.count(text)
            if score <= 0:
                continue
            found.append(CategoryAssignment(category.slug, score))
            for sub in category.subcategories:
                sub_score = sub.count(text)
                if sub_score > 0:
                    found.append(CategoryAssignment(sub.slug, sub_score))

        if not found:
            return [CategoryAssignment(OTHERS_SLUG, 0)]
        return sorted(found, key=lambda a: a.score, reverse=True)

    def classify(self, record: ProductRecord) -> List[CategoryAssignment]:
        assignments = self.classify_text(search_text(record))
        logger.debug(
            f"[STORE] Categories for '{record.name}': "
            + ", ".join(f"{a.slug}={a.score}" for a in assignments)
        )
        return assignments

    def slugs(self, record: ProductRecord) -> List[str]:
        return [a.slug for a in self.classify(record)]


def category_tree(taxonomy: Optional[List[TaxonomyNode]] = None) -> Iterator[Tuple[str, str, Optional[str]]]:
    """
    Yield ``(slug, name, parent_slug)`` for every taxonomy node, parents
    before their children, followed by the ``others`` sentinel.
    """
    for category in taxonomy if taxonomy is not None else TAXONOMY:
        yield category.slug, category.name, None
        for sub in category.subcategories:
            yield sub.slug, sub.name, category.slug
    yield OTHERS_SLUG, OTHERS_NAME, None
