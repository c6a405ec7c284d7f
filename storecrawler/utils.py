"""
Utility Functions
Line, hostname and URL-slug helpers.
"""

import logging
from typing import Dict, Iterable, List
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)

# Parent segments that carry no product name
_GENERIC_PARENTS = {'product', 'producto', 'products', 'productos'}


def extract_domain(url: str) -> str:
    """Extract domain from URL."""
    parsed = urlparse(url)
    return parsed.netloc.lower()


def first_line(text: str) -> str:
    """First non-empty line of *text*, stripped."""
    for line in (text or "").split("\n"):
        if line.strip():
            return line.strip()
    return ""


def slug_to_title(url: str) -> str:
    """
    Derive a display name from the last meaningful path segment of *url*.

    ``https://shop.cl/producto/brackets-roth-022/`` -> ``Brackets Roth 022``.
    A trailing segment directly under ``/product/`` or ``/producto/`` is the
    slug itself; otherwise the last segment is used.
    """
    parts = [unquote(p) for p in urlparse(url).path.split('/') if p]
    if not parts:
        return ""
    slug = parts[-1]
    if slug.lower() in _GENERIC_PARENTS and len(parts) >= 2:
        slug = parts[-2]
    words = slug.replace('_', '-').split('-')
    return ' '.join(w.capitalize() for w in words if w)


def group_by_domain(items: Iterable, key=lambda item: item.url) -> Dict[str, List]:
    """Group *items* by hostname, keeping first-seen domain order and input order."""
    groups: Dict[str, List] = {}
    for item in items:
        groups.setdefault(extract_domain(key(item)), []).append(item)
    return groups
