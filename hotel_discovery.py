"""
FAQ Audit - Hotel Discovery
Walks a country/region listing page (and the city pages it links to) and
returns the hotels found there, each with its /faq URL when one exists.
"""

import re
import urllib.parse
from collections import Counter

from bs4 import BeautifulSoup

from faq_models import HotelItem
from page_fetcher import FetchError

NON_PROPERTY_URL = re.compile(r"/(brand|advantage|club|loyalty|offers?)/?$", re.I)
NON_PROPERTY_SEGMENT = re.compile(r"^(reviews|offers?|brand|advantage|club|loyalty)$", re.I)
CHROME_SELECTOR = "header, nav, footer, .site-header, .site-footer, [role=navigation]"
BREADCRUMB_SELECTOR = "[aria-label=breadcrumb], nav.breadcrumb, .breadcrumb"


def _segments(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def pretty_name(url: str) -> str:
    """'https://x/london/leonardo-royal-hotel-london' -> 'leonardo royal hotel london'"""
    segs = _segments(urllib.parse.urlparse(url).path)
    last = segs[-1] if segs else url
    return urllib.parse.unquote(last).replace("-", " ").strip()


def classify_link(href: str, base_url: str, host: str, country_seg: str = ""):
    """Sort one link into ("hotel", url), ("city", url) or None.

    Raises ValueError for links urllib cannot parse (e.g. a broken IPv6 host).
    """
    absolute = urllib.parse.urljoin(base_url, href)
    parsed = urllib.parse.urlparse(absolute)
    if parsed.scheme not in ("http", "https") or parsed.netloc.lower() != host:
        return None

    clean = f"{parsed.scheme}://{parsed.netloc}{parsed.path}".rstrip("/")
    if NON_PROPERTY_URL.search(clean):
        return None

    segs = _segments(parsed.path)
    if len(segs) >= 2:
        if NON_PROPERTY_SEGMENT.match(segs[1]):
            return None
        return "hotel", f"{parsed.scheme}://{parsed.netloc}/{segs[0]}/{segs[1]}"
    if len(segs) == 1 and segs[0].lower() != country_seg:
        return "city", clean
    return None


def listing_scope(soup):
    """<main>, or <body> with site chrome (header/nav/footer) removed."""
    main = soup.find("main")
    if main is not None:
        return main
    body = soup.body or soup
    for el in body.select(CHROME_SELECTOR):
        el.extract()
    return body


class HotelDiscoverer:
    """Finds hotel pages under a country page and checks which have an FAQ."""

    def __init__(self, fetcher):
        self.fetcher = fetcher

    def _links(self, html: str, page_url: str, host: str, country_seg: str, strip_chrome=True):
        soup = BeautifulSoup(html, "lxml")
        scope = listing_scope(soup) if strip_chrome else (soup.find("main") or soup.body or soup)
        for a in scope.find_all("a", href=True):
            href = a["href"].strip()
            if not href:
                continue
            try:
                found = classify_link(href, page_url, host, country_seg)
            except ValueError as e:
                print(f"    [discover] Skipping malformed link {href!r}: {e}")
                continue
            if found:
                yield found

    def known_cities(self, city_urls, hotel_urls) -> set[str]:
        """City page slugs, plus any first segment shared by two or more hotels."""
        slugs = {_segments(urllib.parse.urlparse(u).path)[0].lower() for u in city_urls}
        firsts = Counter(_segments(urllib.parse.urlparse(u).path)[0].lower() for u in hotel_urls)
        slugs.update(seg for seg, n in firsts.items() if n >= 2)
        return slugs

    def belongs_to_country(self, hotel_url: str, cities: set) -> bool:
        segs = _segments(urllib.parse.urlparse(hotel_url).path)
        if segs and segs[0].lower() in cities:
            return True
        if not cities:
            return False

        try:
            html = self.fetcher.fetch_text(hotel_url)
        except FetchError as e:
            print(f"    [discover] Could not verify {hotel_url}: {e.reason}")
            return False

        soup = BeautifulSoup(html, "lxml")
        slugs = sorted(cities)
        names = [s.replace("-", " ") for s in slugs]
        crumb = " ".join(el.get_text(" ") for el in soup.select(BREADCRUMB_SELECTOR)).lower()
        if crumb and any(s in crumb or n in crumb for s, n in zip(slugs, names)):
            return True

        body = (soup.body or soup).get_text(" ").lower()
        return any(re.search(rf"\b{re.escape(n)}\b", body) for n in names)

    def collect_hotels(self, country_url: str) -> list[HotelItem]:
        parsed = urllib.parse.urlparse(country_url)
        host = parsed.netloc.lower()
        country_segs = _segments(parsed.path)
        country_seg = country_segs[0].lower() if country_segs else ""

        print(f"  [discover] Reading {country_url}")
        html = self.fetcher.fetch_text(country_url)

        # dicts keep first-seen order
        hotels: dict[str, None] = {}
        cities: dict[str, None] = {}
        for kind, url in self._links(html, country_url, host, country_seg):
            (hotels if kind == "hotel" else cities)[url] = None

        for city_url in cities:
            try:
                city_html = self.fetcher.fetch_text(city_url)
            except FetchError as e:
                print(f"    [discover] City page failed {city_url}: {e.reason}")
                continue
            for kind, url in self._links(city_html, city_url, host, country_seg, strip_chrome=False):
                if kind == "hotel":
                    hotels[url] = None

        print(f"  [discover] {len(cities)} city page(s), {len(hotels)} hotel link(s)")

        known = self.known_cities(cities, hotels)
        items = []
        for url in hotels:
            if not self.belongs_to_country(url, known):
                print(f"    [discover] Not in this country: {url}")
                continue
            faq_url = f"{url}/faq"
            ok = self.fetcher.head_ok(faq_url)
            print(f"    {'[OK]' if ok else '[--]'} {faq_url}")
            items.append(HotelItem(name=pretty_name(url), faq_url=faq_url if ok else None))

        return sorted(items, key=lambda h: h.name.lower())
