"""
FAQ Audit - Page Fetcher
Retrieves raw HTML for hotel listing and FAQ pages.

Static mode issues a plain HTTP GET. Render mode (FAQ_AUDIT_RENDER=1) drives a
headless Chromium via Playwright, opens every tab/accordion/disclosure it can
find, pulls in lazy content, and harvests Q/A pairs straight from the live DOM.
"""

import requests
from playwright.sync_api import sync_playwright, Error as PlaywrightError

from audit_config import ACCEPT_LANGUAGE, AuditSettings
from faq_models import FetchResult, QA, dedupe_qas, make_qa

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-setuid-sandbox",
]
CLICK_TIMEOUT_MS = 2000


class FetchError(Exception):
    """Network or status failure while fetching a page."""

    def __init__(self, url: str, reason: str):
        super().__init__(reason)
        self.url = url
        self.reason = reason


# =============================================================================
# SELECTORS
# =============================================================================

TAB_SELECTORS = [
    "[role=tab]",
    "[data-bs-toggle='tab']",
    "[data-toggle='tab']",
    ".nav-tabs a[href^='#']",
    ".tabs a[href^='#']",
    ".c-tabs a[href^='#']",
    ".faq__tabs a[href^='#']",
]

ACCORDION_SELECTORS = [
    "summary",
    ".accordion-button",
    ".accordion__button",
    ".accordion__header button",
    ".accordion-header button",
    "[data-accordion-trigger]",
    "[data-faq-item] button",
    "[aria-controls]",
]

LOAD_MORE_SELECTORS = [
    "button:has-text('Load more')",
    "button:has-text('Show more')",
    "button:has-text('View all')",
    "button:has-text('See more')",
    "a:has-text('Load more')",
    "a:has-text('Show more')",
    "[data-load-more]",
    ".load-more, .js-load-more",
]

_FORCE_ARIA_JS = """
(nodes) => {
    nodes.forEach((n) => {
        const ctrl = n.getAttribute("aria-controls");
        if (!ctrl) return;
        n.setAttribute("aria-expanded", "true");
        const p = document.getElementById(ctrl);
        if (p) {
            p.hidden = false;
            p.style.display = "block";
            p.classList.add("open", "show", "is-open");
        }
    });
}
"""

_OPEN_DETAILS_JS = "(nodes) => nodes.forEach((d) => { d.open = true; })"

# Shared by both harvests. `onlyVisible` gates every element on layout visibility.
_HARVEST_JS = """
(onlyVisible) => {
    const isVisible = (el) => {
        if (!el) return false;
        const style = window.getComputedStyle(el);
        const rect = el.getBoundingClientRect();
        const hidden = style.display === "none" || style.visibility === "hidden" || style.opacity === "0";
        const zero = rect.width === 0 || rect.height === 0;
        return !hidden && !zero && el.offsetParent !== null;
    };
    const ok = (el) => !onlyVisible || isVisible(el);
    const norm = (s) => (s || "").replace(/\\s+/g, " ").trim();
    const text = (el) => el ? norm(el.innerText) : "";
    const out = [];
    const seen = new Set();
    const push = (q, a) => {
        if (!q || !a) return;
        const k = (q + "||" + a).toLowerCase();
        if (seen.has(k)) return;
        seen.add(k);
        out.push({ q, a });
    };
    const stripSel = "summary, h1, h2, h3, h4, h5, h6, button, .question, [data-question], [role=button]";

    document.querySelectorAll("details").forEach((det) => {
        if (!ok(det)) return;
        const q = text(det.querySelector("summary"));
        const clone = det.cloneNode(true);
        const sum = clone.querySelector("summary");
        if (sum) sum.remove();
        // innerText is empty on detached nodes, textContent is not
        push(q, norm(clone.textContent));
    });

    document.querySelectorAll("[aria-controls]").forEach((trig) => {
        const id = trig.getAttribute("aria-controls") || "";
        if (!id) return;
        const panel = document.getElementById(id);
        if (!ok(trig) || !ok(panel)) return;
        push(text(trig), text(panel));
    });

    if (!onlyVisible) {
        document.querySelectorAll("[data-bs-target],[data-target],a[href^='#']").forEach((trig) => {
            const t = trig.getAttribute("data-bs-target") || trig.getAttribute("data-target") || trig.getAttribute("href") || "";
            const id = t.startsWith("#") ? t.slice(1) : "";
            if (!id) return;
            push(text(trig), text(document.getElementById(id)));
        });
    }

    const itemSel = [
        ".accordion-item", ".accordion__item", ".faq-item", ".faq__item",
        "[data-faq-item]", "[data-accordion-item]"
    ].join(", ");
    document.querySelectorAll(itemSel).forEach((it) => {
        if (!ok(it)) return;
        const qEl = it.querySelector(stripSel) || it.querySelector("[class*='title']");
        let a = text(
            it.querySelector(".answer, .accordion-body, .accordion__panel, [data-answer]") ||
            it.querySelector("[class*='content'], [class*='panel']")
        );
        if (!a) {
            const clone = it.cloneNode(true);
            clone.querySelectorAll(stripSel).forEach((n) => n.remove());
            a = norm(clone.textContent);
        }
        push(text(qEl), a);
    });

    if (onlyVisible) {
        document.querySelectorAll("h3, h4").forEach((h) => {
            if (!isVisible(h)) return;
            let a = "";
            let n = h.nextElementSibling;
            let steps = 0;
            while (n && steps < 12) {
                if (/^h[1-6]$/i.test(n.tagName)) break;
                if (!/^(script|style)$/i.test(n.tagName) && isVisible(n)) a += " " + text(n);
                n = n.nextElementSibling;
                steps++;
            }
            push(text(h), a.trim());
        });
    }

    return out;
}
"""


def _keep_harvested(rows) -> list[QA]:
    """Normalize raw {q, a} dicts; drop tiny answers and answers that echo the question."""
    out = []
    for row in rows or []:
        qa = make_qa(str(row.get("q", "")), str(row.get("a", "")))
        if not qa or len(qa.a) < 5 or qa.a.lower() == qa.q.lower():
            continue
        out.append(qa)
    return out


# =============================================================================
# PAGE DRIVER
# =============================================================================

class PageDriver:
    """Drives one live Playwright page to its most-expanded state.

    Every action is fault-tolerant on its own: a missing control, a detached
    node or a timeout is skipped and the next element is tried.
    """

    def __init__(self, page, settings: AuditSettings):
        self.page = page
        self.settings = settings
        self.clicks = 0

    def _pause(self, ms: int):
        if ms > 0:
            self.page.wait_for_timeout(ms)

    def _click_all(self, selectors: list, pause_ms: int):
        for sel in selectors:
            loc = self.page.locator(sel)
            try:
                count = loc.count()
            except PlaywrightError:
                continue
            for i in range(count):
                try:
                    loc.nth(i).click(force=True, timeout=CLICK_TIMEOUT_MS)
                    self.clicks += 1
                    self._pause(pause_ms)
                except PlaywrightError:
                    continue

    def click_tabs(self):
        self._click_all(TAB_SELECTORS, self.settings.click_pause_ms)

    def click_accordions(self):
        self._click_all(ACCORDION_SELECTORS, max(60, self.settings.click_pause_ms // 2))

    def force_aria_panels(self):
        """Mark ARIA-linked panels expanded and visible, overriding hiding CSS."""
        try:
            self.page.locator("[aria-controls]").evaluate_all(_FORCE_ARIA_JS)
        except PlaywrightError as e:
            print(f"  [JS] Could not force ARIA panels open: {e}")

    def open_disclosures(self):
        try:
            self.page.locator("details").evaluate_all(_OPEN_DETAILS_JS)
        except PlaywrightError as e:
            print(f"  [JS] Could not open <details>: {e}")

    def wait_idle(self):
        try:
            self.page.wait_for_load_state("networkidle", timeout=self.settings.idle_timeout_ms)
        except PlaywrightError:
            pass  # timeout here means: keep what we have

    def trigger_load_more(self, max_cycles: int):
        for sel in LOAD_MORE_SELECTORS:
            for _ in range(max_cycles):
                el = self.page.locator(sel).first
                try:
                    if not el.is_visible():
                        break
                except PlaywrightError:
                    break
                try:
                    el.click(force=True, timeout=CLICK_TIMEOUT_MS)
                    self.clicks += 1
                except PlaywrightError:
                    continue
                self.wait_idle()
                self._pause(250)

    def scroll(self, steps: int, delta: int):
        for _ in range(steps):
            try:
                self.page.mouse.wheel(0, delta)
                self._pause(100)
            except PlaywrightError:
                break
        self.wait_idle()

    def expand_all(self):
        self.click_tabs()
        self.click_accordions()
        self.force_aria_panels()
        self.open_disclosures()
        self.trigger_load_more(self.settings.loadmore_cycles)
        self.scroll(self.settings.scroll_steps, self.settings.scroll_delta)

    def _harvest(self, only_visible: bool) -> list[QA]:
        try:
            rows = self.page.evaluate(_HARVEST_JS, only_visible)
        except PlaywrightError as e:
            print(f"  [JS] Q/A harvest failed: {e}")
            return []
        return _keep_harvested(rows)

    def harvest_visible_qas(self) -> list[QA]:
        return self._harvest(True)

    def harvest_accessible_qas(self) -> list[QA]:
        """Like the visible harvest, but also takes ARIA-linked panels CSS still hides."""
        return self._harvest(False)


# =============================================================================
# FETCHER
# =============================================================================

class PageFetcher:
    """Fetches pages statically or through a headless browser."""

    def __init__(self, settings: AuditSettings, session: requests.Session = None):
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": settings.user_agent,
            "Accept-Language": ACCEPT_LANGUAGE,
        })

    # -- static ---------------------------------------------------------------

    def _get(self, url: str) -> str:
        try:
            resp = self.session.get(url, timeout=self.settings.request_timeout, allow_redirects=True)
        except requests.RequestException as e:
            raise FetchError(url, f"GET {url} failed: {e}") from e
        if not 200 <= resp.status_code < 300:
            raise FetchError(url, f"GET {url} -> {resp.status_code}")
        return resp.text

    def head_ok(self, url: str) -> bool:
        """True if the URL answers 2xx. HEAD first, GET when HEAD is refused."""
        timeout = self.settings.request_timeout
        try:
            r = self.session.head(url, timeout=timeout, allow_redirects=True)
            if 200 <= r.status_code < 300:
                return True
        except requests.RequestException:
            pass
        try:
            r = self.session.get(url, timeout=timeout, allow_redirects=True)
            return 200 <= r.status_code < 300
        except requests.RequestException:
            return False

    # -- rendered -------------------------------------------------------------

    def _render(self, url: str, expand: bool) -> FetchResult:
        """Open one isolated browser for this URL. The browser never outlives the call."""
        launch_kwargs = {"headless": True, "args": LAUNCH_ARGS}
        if self.settings.playwright_channel:
            launch_kwargs["channel"] = self.settings.playwright_channel

        try:
            with sync_playwright() as pw:
                browser = pw.chromium.launch(**launch_kwargs)
                try:
                    page = browser.new_page(user_agent=self.settings.user_agent)
                    page.goto(url, wait_until="networkidle", timeout=self.settings.nav_timeout_ms)
                    if not expand:
                        return FetchResult(html=page.content())

                    driver = PageDriver(page, self.settings)
                    driver.expand_all()
                    visible = driver.harvest_visible_qas()
                    accessible = driver.harvest_accessible_qas()
                    qas = dedupe_qas(visible + accessible)
                    print(f"  [JS] {url}: {driver.clicks} clicks, "
                          f"{len(visible)} visible + {len(accessible)} accessible -> {len(qas)} Q/A")
                    return FetchResult(html=page.content(), qas=qas)
                finally:
                    browser.close()
        except PlaywrightError as e:
            raise FetchError(url, f"Render failed for {url}: {e}") from e

    # -- public ---------------------------------------------------------------

    def fetch_text(self, url: str) -> str:
        """HTML of a listing/hotel page (no widget expansion)."""
        if self.settings.render:
            return self._render(url, expand=False).html
        return self._get(url)

    def fetch(self, url: str) -> FetchResult:
        """HTML of a FAQ page, plus live-DOM Q/A pairs when rendering."""
        if self.settings.render:
            return self._render(url, expand=True)
        return FetchResult(html=self._get(url))
