"""
Shared fixtures: captured-style result pages for each provider.
"""

import base64

import pytest


def bing_redirect(target: str) -> str:
    token = base64.urlsafe_b64encode(target.encode()).decode().rstrip("=")
    return f"https://www.bing.com/ck/a?!&&p=abc&u=a1{token}&ntb=1"


BING_HTML = f"""
<html><body><ol id="b_results">
  <li class="b_algo">
    <h2><a href="{bing_redirect('https://docs.python.org/3/library/asyncio.html')}">asyncio — Asynchronous I/O</a></h2>
    <div class="b_caption"><p>asyncio is a library to write concurrent code using async/await syntax.</p></div>
  </li>
  <li class="b_algo b_ad">
    <h2><a href="https://ads.example.com/">Buy now</a></h2>
  </li>
  <li class="b_algo">
    <h2><a href="https://realpython.com/async-io-python/">Async IO in Python: A Complete Walkthrough</a></h2>
    <p class="b_lineclamp2">This tutorial will give you a firm grasp of Python's approach to async IO.</p>
  </li>
  <li class="b_algo">
    <h2><a href="https://www.bing.com/images/search?q=asyncio">Images</a></h2>
  </li>
</ol></body></html>
"""

BRAVE_HTML = """
<html><body><div id="results">
  <div class="snippet" data-type="web">
    <a href="https://tokio.rs/"><div class="title">Tokio - An asynchronous Rust runtime</div></a>
    <div class="snippet-description">Tokio is an event-driven, non-blocking I/O platform.</div>
  </div>
  <div class="snippet" data-type="news">
    <a href="https://news.example.com/"><div class="title">News item</div></a>
  </div>
  <div class="snippet ad" data-type="web">
    <a href="https://sponsor.example.com/"><div class="title">Sponsored</div></a>
  </div>
  <div class="snippet" data-type="web">
    <a href="https://search.brave.com/help"><div class="title">Brave help</div></a>
  </div>
</div></body></html>
"""

DDG_HTML = """
<html><body>
  <div class="result results_links result--ad">
    <a class="result__a" href="https://duckduckgo.com/y.js?ad_provider=bing">Ad</a>
  </div>
  <div class="result results_links">
    <h2><a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fen.wikipedia.org%2Fwiki%2FAsync%252Fawait&amp;rut=x">async/await - Wikipedia</a></h2>
    <a class="result__snippet">In computer programming, the async/await pattern is a syntactic feature.</a>
  </div>
  <div class="result results_links">
    <h2><a class="result__a" href="https://peps.python.org/pep-0492/">PEP 492 – Coroutines with async and await syntax</a></h2>
    <a class="result__snippet">This proposal introduces new syntax.</a>
  </div>
</body></html>
"""


@pytest.fixture
def bing_html():
    return BING_HTML


@pytest.fixture
def brave_html():
    return BRAVE_HTML


@pytest.fixture
def ddg_html():
    return DDG_HTML
