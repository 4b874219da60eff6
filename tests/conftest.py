from __future__ import annotations

from datetime import datetime, timezone

import pytest

ARTICLE_HTML = """
<html>
  <head><title>Harbour Report | Example Times</title></head>
  <body>
    <nav><a href="/">Home</a> <a href="/news">News</a></nav>
    <script>var tracking = "ignore me";</script>
    <main>
      <article>
        <h1>Harbour Report</h1>
        <p>The harbour authority confirmed on Tuesday that the new container terminal will open
        next spring, after three years of construction and several delays caused by storms.</p>
        <p>Advertisement</p>
        <p>Officials said the terminal doubles the port's capacity and is expected to bring
        hundreds of permanent jobs to the region, along with new rail links to the interior.</p>
        <p>Local fishermen raised concerns about dredging near the breakwater, and the authority
        promised an independent review of the environmental impact before the opening date.</p>
        <p>Trending [1] | Most Read</p>
      </article>
    </main>
    <footer>Copyright Example Times</footer>
  </body>
</html>
"""

THIN_HTML = "<html><head><title>Empty</title></head><body><p>Nothing here.</p></body></html>"


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def article_html() -> str:
    return ARTICLE_HTML


@pytest.fixture
def thin_html() -> str:
    return THIN_HTML
