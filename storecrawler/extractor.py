"""
Field Extraction
================
Turns a page already classified as a product page into a ``ProductRecord``.

``FieldExtractor`` holds the shared pipeline; the platform variants only
differ in how the name is derived from the document title and which extras
(SKU, brand, presentation) they read.

Every field is extracted independently: a failure in one field is logged
and leaves that field at its default, the rest of the record still fills in.
"""

from __future__ import annotations

import logging
import re
from abc import ABC
from typing import Any, Awaitable, Dict, Optional, Type
from urllib.parse import urljoin

from .inspector import ElementRef, PageInspector
from .models import ExtractionTask, Platform, ProductRecord
from .pricing import AMOUNT_RE, PRICE_NOT_FOUND, apply_unavailable, clean_price, normalize_price
from .selectors import SelectorRegistry, SiteSelectors
from .sites import build_registry
from .stock import StockReading, read_stock
from .utils import slug_to_title

logger = logging.getLogger(__name__)

# Page-wide price heuristic
PRICE_HEURISTIC_SELECTOR = (
    ".price, .woocommerce-Price-amount, .product-form-price, #product-form-price, "
    ".form-price_desktop"
)

_AMOUNT_VALUE_RE = re.compile(r"\$\s*([0-9.,]+)")
_BRAND_RE = re.compile(r"Marca:\s*([^\n]*)")
_PRESENTATION_RE = re.compile(r"Presentacion:\s*([^\n]*)")


class FieldExtractor(ABC):
    """Shared extraction pipeline. Subclasses set ``platform``."""

    platform: Platform

    def __init__(self, registry: Optional[SelectorRegistry] = None):
        self.registry = registry or build_registry()

    async def extract(self, inspector: PageInspector, task: ExtractionTask) -> ProductRecord:
        selectors = self.registry.resolve(task.platform, task.site)
        url = task.url

        name = await self._field("name", self.extract_name(inspector, selectors), "", url)
        if not name:
            name = slug_to_title(url)
        image = await self._field("image", self.extract_image(inspector, selectors), "", url)
        stock = await self._field(
            "stock",
            read_stock(inspector, selectors.stock, selectors.stock_override),
            StockReading(),
            url,
        )
        price = await self._field("price", self.extract_price(inspector, selectors), PRICE_NOT_FOUND, url)
        price = apply_unavailable(price, stock.status)
        description = await self._field(
            "description", self.extract_description(inspector, selectors), "", url
        )
        specifications = await self._field(
            "specifications", self.extract_specifications(inspector, selectors), None, url
        )
        extras = await self._field("extras", self.extract_extras(inspector, selectors), {}, url)

        record = ProductRecord(
            name=name,
            link=url,
            site=task.site,
            platform=task.platform,
            price=price,
            price_value=normalize_price(price),
            stock=stock.status,
            stock_text=stock.text,
            quantity=stock.quantity,
            image=image,
            description=description,
            specifications=specifications,
            **extras,
        )
        logger.debug(
            f"[EXTRACT] {task.site}: '{record.name}' price={record.price} stock={record.stock.value}"
        )
        return record

    @staticmethod
    async def _field(label: str, pending: Awaitable, default: Any, url: str) -> Any:
        try:
            return await pending
        except Exception as exc:
            logger.warning(f"[EXTRACT] Could not read {label} from {url}: {exc}")
            return default

    # ------------------------------------------------------------------
    # Name
    # ------------------------------------------------------------------

    async def extract_name(self, inspector: PageInspector, selectors: SiteSelectors) -> str:
        for selector in (selectors.title,) + tuple(selectors.title_fallbacks):
            el = await inspector.query(selector)
            if el is not None:
                text = await el.inner_text()
                if text:
                    return text
        return self.name_from_title(await inspector.title(), selectors)

    def name_from_title(self, title: str, selectors: SiteSelectors) -> str:
        return title.strip()

    # ------------------------------------------------------------------
    # Image
    # ------------------------------------------------------------------

    async def extract_image(self, inspector: PageInspector, selectors: SiteSelectors) -> str:
        el = await inspector.query(selectors.image)
        if el is None:
            return ""
        src = await el.attribute("src") or await el.attribute("data-src") or ""
        return urljoin(inspector.url, src) if src else ""

    # ------------------------------------------------------------------
    # Price
    # ------------------------------------------------------------------

    async def extract_price(self, inspector: PageInspector, selectors: SiteSelectors) -> str:
        """
        Cleaned price text, or ``PRICE_NOT_FOUND``.

        High-confidence selectors first, then the ordered fallback list, then
        the shortest currency-looking element on the page.
        """
        for selector in selectors.priority_price:
            el = await inspector.query(selector)
            if el is None:
                continue
            text = await el.text()
            if text and text != "$":
                return clean_price(text)

        for selector in selectors.price:
            el = await inspector.query(selector)
            if el is None:
                continue
            if selectors.split_currency_symbol and "currencySymbol" in selector:
                amount = await self._split_symbol_amount(el)
                if amount and amount != "$":
                    return clean_price(amount)
            text = await el.text()
            if not text:
                continue
            if selectors.split_currency_symbol and text == "$":
                continue
            return clean_price(text)

        candidates = []
        for el in await inspector.query_all(PRICE_HEURISTIC_SELECTOR):
            text = await el.text()
            if AMOUNT_RE.search(text):
                candidates.append(text)
        if candidates:
            return clean_price(min(candidates, key=len))

        return PRICE_NOT_FOUND

    @staticmethod
    async def _split_symbol_amount(symbol: ElementRef) -> Optional[str]:
        parent = await symbol.parent()
        if parent is not None and await parent.tag_name() == "bdi":
            match = _AMOUNT_VALUE_RE.search(await parent.text())
            if match:
                return "$" + match.group(1)

        sibling = await symbol.next_text_sibling()
        if sibling:
            return "$" + sibling

        if parent is not None:
            match = _AMOUNT_VALUE_RE.search(await parent.text())
            if match:
                return "$" + match.group(1)

        return await symbol.text()

    # ------------------------------------------------------------------
    # Description / specifications
    # ------------------------------------------------------------------

    async def extract_description(self, inspector: PageInspector, selectors: SiteSelectors) -> str:
        el = await inspector.first_match(selectors.description)
        return await el.inner_text() if el is not None else ""

    async def extract_specifications(
        self, inspector: PageInspector, selectors: SiteSelectors
    ) -> Optional[Dict[str, str]]:
        specs: Dict[str, str] = {}

        for table_selector in selectors.spec_tables:
            table = await inspector.query(table_selector)
            if table is None:
                continue
            for row in await table.query_all("tr"):
                cells = await row.query_all("td, th")
                if len(cells) < 2:
                    continue
                key = (await cells[0].text()).replace(":", "", 1).strip()
                value = await cells[1].text()
                if key and value:
                    specs[key] = value

        for list_selector in selectors.spec_lists:
            for item in await inspector.query_all(list_selector):
                text = await item.text()
                key, sep, value = text.partition(":")
                if sep and key.strip() and value.strip():
                    specs[key.strip()] = value.strip()

        return specs or None

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    async def extract_extras(self, inspector: PageInspector, selectors: SiteSelectors) -> Dict[str, Optional[str]]:
        return {}


class WooCommerceExtractor(FieldExtractor):
    platform = Platform.WOOCOMMERCE

    def name_from_title(self, title: str, selectors: SiteSelectors) -> str:
        return title.split(" - ")[0].strip()

    async def extract_extras(self, inspector: PageInspector, selectors: SiteSelectors) -> Dict[str, Optional[str]]:
        if not selectors.sku:
            return {}
        sku = await inspector.first_text((selectors.sku,))
        return {'sku': sku or None}


class JumpsellerExtractor(FieldExtractor):
    platform = Platform.JUMPSELLER

    def name_from_title(self, title: str, selectors: SiteSelectors) -> str:
        if selectors.title_suffix:
            title = title.replace(selectors.title_suffix, "")
        return title.strip()

    async def extract_extras(self, inspector: PageInspector, selectors: SiteSelectors) -> Dict[str, Optional[str]]:
        extras: Dict[str, Optional[str]] = {'sku': None, 'brand': None, 'presentation': None}
        page_text: Optional[str] = None

        if selectors.sku:
            el = await inspector.query(selectors.sku)
            if el is not None:
                extras['sku'] = (await el.text()).replace("SKU:", "").strip() or None

        if selectors.brand:
            el = await inspector.query(selectors.brand)
            if el is not None:
                extras['brand'] = (await el.text()) or None
        if extras['brand'] is None:
            page_text = await inspector.body_text()
            match = _BRAND_RE.search(page_text)
            if match:
                extras['brand'] = match.group(1).strip() or None

        if page_text is None:
            page_text = await inspector.body_text()
        match = _PRESENTATION_RE.search(page_text)
        if match:
            extras['presentation'] = match.group(1).strip() or None

        return extras


_EXTRACTORS: Dict[Platform, Type[FieldExtractor]] = {
    Platform.WOOCOMMERCE: WooCommerceExtractor,
    Platform.JUMPSELLER: JumpsellerExtractor,
}


def extractor_for(platform: Platform, registry: Optional[SelectorRegistry] = None) -> FieldExtractor:
    """Extractor instance for *platform*."""
    try:
        cls = _EXTRACTORS[platform]
    except KeyError:
        raise ValueError(f"No extractor for platform '{platform}'") from None
    return cls(registry)
