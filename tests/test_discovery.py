import pytest

from conftest import FakeFetcher
from faq_models import HotelItem
from hotel_discovery import HotelDiscoverer, classify_link, pretty_name

SITE = "https://www.hotels.example"
COUNTRY = f"{SITE}/united-kingdom"

COUNTRY_PAGE = """<html><body>
<header><a href="/header-only/hotel-in-header">Header</a></header>
<main>
  <a href="/london">London</a>
  <a href="/paris">Paris</a>
  <a href="/london/royal-hotel-london">Royal</a>
  <a href="/london/royal-hotel-london/reviews#top">Reviews</a>
  <a href="/edinburgh/leonardo-edinburgh-city">Edinburgh</a>
  <a href="/manchester/hotel-manchester">Manchester</a>
  <a href="/brand">Brand</a>
  <a href="/offers/">Offers</a>
  <a href="/london/offers">London offers</a>
  <a href="/united-kingdom">UK</a>
  <a href="https://other.example.org/london/elsewhere">External</a>
  <a href="http://[::1">Broken</a>
  <a href="">Empty</a>
</main>
</body></html>"""

LONDON_PAGE = """<html><body><main>
  <a href="/london/city-hotel-london">City</a>
  <a href="/london/royal-hotel-london">Royal again</a>
</main></body></html>"""

EDINBURGH_HOTEL = "<html><body><p>Welcome to Edinburgh's old town.</p></body></html>"
MANCHESTER_HOTEL = """<html><body>
  <nav class="breadcrumb">Home / United Kingdom / London area</nav>
  <p>Near the station.</p>
</body></html>"""


@pytest.fixture
def fetcher():
    return FakeFetcher(
        pages={
            COUNTRY: COUNTRY_PAGE,
            f"{SITE}/london": LONDON_PAGE,
            f"{SITE}/edinburgh/leonardo-edinburgh-city": EDINBURGH_HOTEL,
            f"{SITE}/manchester/hotel-manchester": MANCHESTER_HOTEL,
        },
        heads={f"{SITE}/london/royal-hotel-london/faq"},
    )


def test_collect_hotels(fetcher):
    hotels = HotelDiscoverer(fetcher).collect_hotels(COUNTRY)
    assert hotels == [
        HotelItem(name="city hotel london", faq_url=None),
        HotelItem(name="hotel manchester", faq_url=None),
        HotelItem(name="royal hotel london", faq_url=f"{SITE}/london/royal-hotel-london/faq"),
    ]


def test_city_pages_are_visited_and_failures_skipped(fetcher, capsys):
    HotelDiscoverer(fetcher).collect_hotels(COUNTRY)
    assert f"{SITE}/london" in fetcher.fetched
    assert f"{SITE}/paris" in fetcher.fetched
    out = capsys.readouterr().out
    assert "City page failed" in out
    assert "Skipping malformed link" in out


def test_hotels_with_known_city_slug_are_not_fetched(fetcher):
    HotelDiscoverer(fetcher).collect_hotels(COUNTRY)
    assert f"{SITE}/london/royal-hotel-london" not in fetcher.fetched
    assert f"{SITE}/edinburgh/leonardo-edinburgh-city" in fetcher.fetched


def test_header_links_ignored_when_main_exists(fetcher):
    names = [h.name for h in HotelDiscoverer(fetcher).collect_hotels(COUNTRY)]
    assert "hotel in header" not in names


def test_body_scope_strips_site_chrome():
    page = """<html><body>
      <header><a href="/london/header-hotel">H</a></header>
      <div class="site-footer"><a href="/london/footer-hotel">F</a></div>
      <div><a href="/london/body-hotel">B</a><a href="/london/second-hotel">B2</a></div>
    </body></html>"""
    f = FakeFetcher(pages={COUNTRY: page})
    names = [h.name for h in HotelDiscoverer(f).collect_hotels(COUNTRY)]
    assert names == ["body hotel", "second hotel"]


def test_whole_word_city_mention_in_body():
    page = '<html><body><main><a href="/lonely/a-hotel">A</a><a href="/london">L</a></main></body></html>'
    f = FakeFetcher(pages={
        COUNTRY: page,
        f"{SITE}/london": "<html><body></body></html>",
        f"{SITE}/lonely/a-hotel": "<html><body><p>Ten minutes from London Bridge.</p></body></html>",
    })
    assert [h.name for h in HotelDiscoverer(f).collect_hotels(COUNTRY)] == ["a hotel"]


@pytest.mark.parametrize("href", ["/brand", "/offers", "/offer/", "/club", "/london/reviews", "/london/offers"])
def test_non_property_links_never_become_candidates(href):
    assert classify_link(href, COUNTRY, "www.hotels.example", "united-kingdom") is None


def test_classify_link_normalizes_hotels_and_cities():
    host = "www.hotels.example"
    assert classify_link("/london/royal/rooms?x=1", COUNTRY, host, "united-kingdom") == (
        "hotel", f"{SITE}/london/royal")
    assert classify_link("/london/?utm=1#map", COUNTRY, host, "united-kingdom") == ("city", f"{SITE}/london")
    assert classify_link("/united-kingdom", COUNTRY, host, "united-kingdom") is None
    assert classify_link("https://elsewhere.example/london/x", COUNTRY, host, "united-kingdom") is None
    assert classify_link("mailto:hi@hotels.example", COUNTRY, host, "united-kingdom") is None


def test_classify_link_raises_on_malformed_url():
    with pytest.raises(ValueError):
        classify_link("http://[::1", COUNTRY, "www.hotels.example", "united-kingdom")


def test_pretty_name_decodes_slug():
    assert pretty_name(f"{SITE}/m%C3%BCnchen/hotel-m%C3%BCnchen-city") == "hotel münchen city"
