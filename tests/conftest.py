import pytest

from audit_config import AuditSettings
from faq_models import FetchResult
from page_fetcher import FetchError
from sheets_store import WorkbookStore


PARKING_PAGE = """<html><head><title>Hotel FAQ</title>
<meta name="description" content="Hotel FAQ"></head>
<body><details><summary>Is parking free?</summary><p>No, a fee of €15/night applies.</p></details></body></html>"""


class FakeLLM:
    """Stands in for LLMClient. `reply` is a string, a callable(prompt) or an exception."""

    def __init__(self, reply='{"issues": []}'):
        self.reply = reply
        self.calls = []

    def submit(self, prompt, system=None, model=None):
        self.calls.append({"prompt": prompt, "system": system, "model": model})
        if isinstance(self.reply, Exception):
            raise self.reply
        if callable(self.reply):
            return self.reply(prompt)
        return self.reply


class FakeFetcher:
    """Serves canned HTML by URL. Unknown URLs fail like a 404."""

    def __init__(self, pages=None, heads=None, results=None, errors=None):
        self.pages = pages or {}
        self.heads = set(heads or [])
        self.results = results or {}
        self.errors = errors or {}
        self.fetched = []

    def fetch_text(self, url):
        self.fetched.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url not in self.pages:
            raise FetchError(url, f"GET {url} -> 404")
        return self.pages[url]

    def fetch(self, url):
        if url in self.results:
            self.fetched.append(url)
            return self.results[url]
        return FetchResult(html=self.fetch_text(url))

    def head_ok(self, url):
        return url in self.heads


@pytest.fixture
def settings():
    return AuditSettings()


@pytest.fixture
def store(tmp_path):
    return WorkbookStore(str(tmp_path / "reports"))


@pytest.fixture
def fake_llm():
    return FakeLLM()
