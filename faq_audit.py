"""
FAQ Audit - Audit Job
Discover hotels -> fetch each FAQ page -> extract -> rule/semantic/SEO checks
-> one "Audit" tab in a new workbook.
"""

from faq_extractor import FaqExtractor, flatten
from faq_models import AuditSummary, Group
from faq_report import ReportCompiler
from faq_rules import DEFAULT_TOPIC_RULES, check_rules
from faq_seo import check_seo

AUDIT_TAB = "Audit"
RENDERED_GROUP_LABEL = "FAQ (DOM-accessible)"


class FaqAuditJob:
    """Runs one audit over every hotel under a country page."""

    def __init__(self, discoverer, fetcher, semantic, store, topic_rules=DEFAULT_TOPIC_RULES,
                 extractor: FaqExtractor = None):
        self.discoverer = discoverer
        self.fetcher = fetcher
        self.semantic = semantic
        self.store = store
        self.topic_rules = topic_rules
        self.extractor = extractor or FaqExtractor()

    def audit_hotel(self, hotel, report: ReportCompiler):
        if not hotel.faq_url:
            report.add_not_found(hotel)
            return

        try:
            fetched = self.fetcher.fetch(hotel.faq_url)
        except Exception as e:
            reason = getattr(e, "reason", None) or str(e) or e.__class__.__name__
            print(f"    [fetch] {hotel.faq_url} failed: {reason}")
            report.add_fetch_failed(hotel, reason)
            return

        try:
            self.check_page(hotel, fetched, report)
        except Exception as e:
            reason = f"{e.__class__.__name__}: {e}" if str(e) else e.__class__.__name__
            print(f"    [audit] {hotel.name}: checks failed: {reason}")
            report.add_audit_failed(hotel, reason)

    def check_page(self, hotel, fetched, report: ReportCompiler):
        if fetched.qas:
            groups = [Group(label=RENDERED_GROUP_LABEL, items=list(fetched.qas))]
        else:
            groups = self.extractor.extract(fetched.html)
        all_qas = flatten(groups)

        if not all_qas:
            print(f"    [audit] {hotel.name}: no Q/A items found")
            report.add_no_items(hotel)
            return

        seo = check_seo(fetched.html)
        issues = check_rules(all_qas, self.topic_rules)
        issues += self.semantic.check(groups, all_qas)
        issues += seo.issues

        print(f"    [audit] {hotel.name}: {len(all_qas)} Q/A in {len(groups)} group(s), "
              f"{len(issues)} issue(s)")
        report.add_audited(hotel, len(all_qas), issues, seo)

    def run(self, country_url: str, sheet_title: str) -> AuditSummary:
        hotels = self.discoverer.collect_hotels(country_url)
        print(f"  [audit] {len(hotels)} hotel(s) to audit")

        spreadsheet_id = self.store.create_spreadsheet(sheet_title)
        first_tab = self.store.get_first_sheet_title(spreadsheet_id)
        first_id = self.store.get_sheet_id_by_title(spreadsheet_id, first_tab)
        self.store.duplicate_sheet(spreadsheet_id, first_id, AUDIT_TAB)

        report = ReportCompiler()
        for i, hotel in enumerate(hotels, 1):
            print(f"  [{i}/{len(hotels)}] {hotel.name}")
            self.audit_hotel(hotel, report)

        self.store.write_values(spreadsheet_id, f"{AUDIT_TAB}!A1", report.values())
        self.store.format_sheet_like_faq(spreadsheet_id, AUDIT_TAB)
        return report.summary(spreadsheet_id)
