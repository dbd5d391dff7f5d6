"""
FAQ Audit - CLI Runner

Usage:
    python run_audit.py audit <country_url> [--title T] [--json out.json]
    python run_audit.py validate <id|path>... [--tabs ALL|t1,t2] [--no-write-back]
    python run_audit.py meta-schema <id|path> [--meta-row 70]
    python run_audit.py translate <id|path> --langs de,fr [--tab T]
    python run_audit.py rewrite <id|path> [--tab T] [--hotel-name N] [--grammar]
"""

import argparse
import json
import sys
import time
from datetime import datetime

from dotenv import load_dotenv

from audit_config import AuditSettings
from faq_audit import FaqAuditJob
from faq_report import generate_json_report
from faq_rules import load_topic_rules
from faq_semantic import SemanticValidator
from hotel_discovery import HotelDiscoverer
from llm_client import LLMClient, ModelCallError, UsageGuard, pick_provider
from page_fetcher import FetchError, PageFetcher
from sheet_jobs import MetaSchemaJob, RewriteJob, TranslateJob
from sheets_store import WorkbookStore, parse_spreadsheet_id
from validate_lite import ModelOutputMalformed, ValidateLiteJob


def _banner(*lines):
    print("=" * 70)
    for line in lines:
        print(f"  {line}")
    print("=" * 70)


def build_audit_job(settings: AuditSettings, llm: LLMClient) -> FaqAuditJob:
    """Wire every collaborator once and hand them to the job."""
    fetcher = PageFetcher(settings)
    return FaqAuditJob(
        discoverer=HotelDiscoverer(fetcher),
        fetcher=fetcher,
        semantic=SemanticValidator(llm, max_calls=settings.max_calls_per_hotel, model=settings.model),
        store=WorkbookStore(settings.output_dir),
        topic_rules=load_topic_rules(settings.topic_rules_path),
    )


def cmd_audit(args, settings: AuditSettings, llm: LLMClient) -> int:
    title = args.title or f"FAQ Audit {datetime.now():%Y-%m-%d %H:%M}"
    _banner(
        "FAQ WEB AUDIT",
        f"Country: {args.country_url}",
        f"Mode:    {'render (Playwright)' if settings.render else 'static'}",
        f"Model:   {pick_provider(settings) or 'none (semantic checks will report inference_error)'}",
        f"Calls:   {settings.max_calls_per_hotel} per hotel",
    )
    print()

    job = build_audit_job(settings, llm)
    start = time.time()
    try:
        summary = job.run(args.country_url, title)
    except FetchError as e:
        print(f"\n  [audit] Could not read country page: {e.reason}")
        return 1
    elapsed = time.time() - start

    path = job.store.path_for(summary.spreadsheet_id)
    print()
    _banner(
        f"AUDIT COMPLETE in {elapsed:.1f}s",
        f"Workbook: {path}",
        f"Hotels: {summary.hotels_processed} | With FAQ: {summary.hotels_with_faq} "
        f"| With problems: {summary.hotels_with_problems}",
    )

    if args.json:
        with open(args.json, "w", encoding="utf-8") as f:
            json.dump(generate_json_report(summary, args.country_url, title), f, indent=2, default=str)
        print(f"\n  JSON report saved: {args.json}")
    return 0


def cmd_validate(args, settings: AuditSettings, llm: LLMClient) -> int:
    tabs = None
    if args.tabs:
        tabs = "ALL" if args.tabs.strip().upper() == "ALL" else [t.strip() for t in args.tabs.split(",") if t.strip()]

    _banner("FAQ VALIDATE LITE", f"Workbooks: {len(args.spreadsheets)}", f"Tabs: {args.tabs or 'first'}")
    print()

    job = ValidateLiteJob(llm, WorkbookStore(settings.output_dir))
    reports = job.run(
        args.spreadsheets,
        tabs=tabs,
        write_col=args.write_col,
        fix_col=args.fix_col,
        write_back=not args.no_write_back,
        control_range=args.control,
    )

    print()
    _banner(
        "VALIDATION COMPLETE",
        f"Tabs checked: {len(reports)} | Rows flagged: {sum(r.issues for r in reports)}",
    )
    return 0


# Failures a sheet job reports without a traceback
SHEET_JOB_ERRORS = (ValueError, KeyError, FileNotFoundError, ModelOutputMalformed, ModelCallError)


def cmd_meta_schema(args, settings: AuditSettings, llm: LLMClient) -> int:
    _banner("FAQ META + SCHEMA", f"Workbook: {args.spreadsheet}")
    store = WorkbookStore(settings.output_dir)
    try:
        result = MetaSchemaJob(store).run(
            parse_spreadsheet_id(args.spreadsheet),
            meta_row=args.meta_row,
            schema_row=args.schema_row,
            meta_col=args.meta_col.upper(),
            schema_col=args.schema_col.upper(),
        )
    except SHEET_JOB_ERRORS as e:
        print(f"\n  [meta] Failed: {e}")
        return 1
    print()
    _banner("META + SCHEMA COMPLETE", f"Title: {result.meta_title}", f"Schema Q/A: {result.pairs}")
    return 0


def cmd_translate(args, settings: AuditSettings, llm: LLMClient) -> int:
    langs = [lang.strip() for lang in args.langs.split(",") if lang.strip()]
    _banner("FAQ TRANSLATE", f"Workbook: {args.spreadsheet}", f"Languages: {', '.join(langs)}")
    job = TranslateJob(llm, WorkbookStore(settings.output_dir), model=settings.model)
    try:
        written = job.run(parse_spreadsheet_id(args.spreadsheet), langs,
                          source_tab=args.tab, translate_header=not args.keep_header)
    except SHEET_JOB_ERRORS as e:
        print(f"\n  [translate] Failed: {e}")
        return 1
    print()
    _banner("TRANSLATION COMPLETE", f"Tabs written: {len(written)}/{len(langs)}")
    return 0 if len(written) == len(langs) else 1


def cmd_rewrite(args, settings: AuditSettings, llm: LLMClient) -> int:
    _banner("FAQ REWRITE", f"Workbook: {args.spreadsheet}")
    job = RewriteJob(llm, WorkbookStore(settings.output_dir), model=settings.model)
    try:
        result = job.run(
            parse_spreadsheet_id(args.spreadsheet),
            source_tab=args.tab,
            comment_col=args.comment_col,
            answer_col=args.answer_col,
            target_col=args.target_col,
            check_grammar=args.grammar,
            hotel_name=args.hotel_name,
        )
    except SHEET_JOB_ERRORS as e:
        print(f"\n  [rewrite] Failed: {e}")
        return 1
    print()
    _banner(
        "REWRITE COMPLETE",
        f"Rewrites: {result.rewritten} | Name mentions: {len(result.names_added)} "
        f"| Grammar fixes: {result.grammar_fixes}",
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hotel FAQ web audit")
    sub = parser.add_subparsers(dest="command", required=True)

    audit = sub.add_parser("audit", help="Crawl a country page and audit every hotel FAQ")
    audit.add_argument("country_url", help="Country or region listing page URL")
    audit.add_argument("--title", help="Workbook title (default: dated)")
    audit.add_argument("--json", help="Also write a JSON copy of the report to this file")

    validate = sub.add_parser("validate", help="Flag-and-fix FAQ tabs already in a workbook")
    validate.add_argument("spreadsheets", nargs="*", help="Spreadsheet ids or .xlsx paths")
    validate.add_argument("--tabs", help='"ALL" or a comma-separated list (default: first tab)')
    validate.add_argument("--control", help="Control range listing ids, e.g. <id>!A1:A50")
    validate.add_argument("--write-col", default="G", help="Issue column (default: G)")
    validate.add_argument("--fix-col", default="H", help="Fix column (default: H)")
    validate.add_argument("--no-write-back", action="store_true", help="Report only, leave tabs untouched")

    meta = sub.add_parser("meta-schema", help="Write meta tags and FAQPage JSON-LD from a workbook's Q/A rows")
    meta.add_argument("spreadsheet", help="Spreadsheet id or .xlsx path")
    meta.add_argument("--meta-row", type=int, default=70, help="Row of the meta header (default: 70)")
    meta.add_argument("--schema-row", type=int, help="Row of the schema label (default: meta row + 3)")
    meta.add_argument("--meta-col", default="A", help="First meta column (default: A)")
    meta.add_argument("--schema-col", default="E", help="Schema column (default: E)")

    translate = sub.add_parser("translate", help="Add one translated copy of a tab per language")
    translate.add_argument("spreadsheet", help="Spreadsheet id or .xlsx path")
    translate.add_argument("--langs", required=True, help="Comma-separated language codes, e.g. de,fr")
    translate.add_argument("--tab", help="Source tab (default: first tab)")
    translate.add_argument("--keep-header", action="store_true", help="Leave the header row untranslated")

    rewrite = sub.add_parser("rewrite", help="Apply reviewer comments and add hotel-name mentions")
    rewrite.add_argument("spreadsheet", help="Spreadsheet id or .xlsx path")
    rewrite.add_argument("--tab", help="Source tab (default: first tab)")
    rewrite.add_argument("--hotel-name", help="Hotel name (default: from the workbook title)")
    rewrite.add_argument("--comment-col", default="E", help="Reviewer comment column (default: E)")
    rewrite.add_argument("--answer-col", default="C", help="Answer column (default: C)")
    rewrite.add_argument("--target-col", default="F", help="Rewritten answer column (default: F)")
    rewrite.add_argument("--grammar", action="store_true", help="Also suggest grammar fixes for uncommented rows")
    return parser


def main(argv=None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    settings = AuditSettings.from_env()
    guard = UsageGuard(settings.llm_max_calls)
    llm = LLMClient(settings, guard)

    commands = {
        "audit": cmd_audit,
        "validate": cmd_validate,
        "meta-schema": cmd_meta_schema,
        "translate": cmd_translate,
        "rewrite": cmd_rewrite,
    }
    code = commands[args.command](args, settings, llm)

    guard.show_status()
    return code


if __name__ == "__main__":
    sys.exit(main())
