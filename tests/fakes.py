"""
Shared fakes for the storecrawler tests: a scripted browser session and
static product pages.
"""

from typing import Dict, List, Union

from storecrawler.errors import ExtractionError
from storecrawler.inspector import HtmlInspector, PageInspector
from storecrawler.session import BrowserSession


WOO_PRODUCT_HTML = """
<html><head><title>Bracket Roth 022 - Ortotek</title></head><body>
<div class="product">
  <div class="woocommerce-product-gallery"><img src="/wp-content/uploads/bracket.jpg"></div>
  <h1 class="product_title entry-title">Bracket Roth 022</h1>
  <p class="price"><span class="woocommerce-Price-amount amount"><bdi><span class="woocommerce-Price-currencySymbol">$</span>12.990</bdi></span></p>
  <p class="stock in-stock">15 disponibles</p>
  <div class="product_meta"><span class="sku">BR-022</span></div>
  <div class="woocommerce-product-details__short-description"><p>Bracket metálico slot 022.</p></div>
  <table class="woocommerce-product-attributes">
    <tr><th>Material:</th><td>Acero</td></tr>
    <tr><th>Slot</th><td>022</td></tr>
  </table>
  <button class="single_add_to_cart_button">Añadir al carrito</button>
</div>
</body></html>
"""

DAMUS_PRODUCT_HTML = """
<html><head><title>Alginato Kromopan - Damus</title></head><body>
<h1 class="page-header">Alginato Kromopan</h1>
<div class="product-image"><img src="https://cdn.damus.cl/img/alginato.jpg"></div>
<form id="product-form-123" method="post" action="/cart/add/123">
  <span class="product-form-price" id="product-form-price">$ 7.490</span>
  <div class="form-group product-stock"><label class="form-control-label">Disponible</label></div>
  <button type="submit">Agregar al carrito</button>
</form>
<div id="product-sku">SKU: ALG-450</div>
<div class="form-group description">
  <p>Alginato de fraguado rápido.</p>
  <p>Marca: Lascod</p>
  <p>Presentacion: Bolsa 450 g</p>
</div>
</body></html>
"""

ABOUT_PAGE_HTML = """
<html><head><title>Nosotros</title></head><body>
<h1>Quiénes somos</h1>
<p>Empresa chilena de insumos.</p>
</body></html>
"""

PageScript = Union[str, Exception, List[Union[str, Exception]]]


class FakeBrowserSession(BrowserSession):
    """
    Scripted session: ``pages`` maps a URL to HTML, to an exception to raise,
    or to a list of those consumed one per visit.
    """

    def __init__(self, pages: Dict[str, PageScript], fail_open: bool = False):
        self.pages = {url: list(v) if isinstance(v, list) else v for url, v in pages.items()}
        self.fail_open = fail_open
        self.opened = False
        self.closed = False
        self.visited: List[str] = []
        self.settled: List[int] = []

    async def open(self) -> None:
        if self.fail_open:
            raise RuntimeError("browser launch failed")
        self.opened = True

    async def goto(self, url: str, timeout_ms: int) -> PageInspector:
        self.visited.append(url)
        script = self.pages.get(url)
        if script is None:
            raise ExtractionError(f"404 {url}")
        if isinstance(script, list):
            script = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(script, Exception):
            raise script
        return HtmlInspector(script, url=url)

    async def settle(self, ms: int) -> None:
        self.settled.append(ms)

    async def close(self) -> None:
        self.closed = True


class SleepRecorder:
    """Drop-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
