# zendesk_export/__main__.py
"""
Zendesk Support → local JSON export

- Tickets, Users (incremental cursor, resumable)
- Per-ticket Comments (resumable via comments.json)
- Comment Attachments (skips files already on disk)
- Views, Triggers, Macros, Automations, Settings, Recipient addresses (snapshots)

Usage examples:
  python -m zendesk_export
  python -m zendesk_export --only tickets,comments
  python -m zendesk_export --export-dir /backups/zendesk --error-policy best-effort
"""

import argparse
import logging
import sys

from .errors import ConfigError, ZendeskExportError
from .orchestrator import STAGES, ExportOrchestrator
from .settings import ERROR_POLICIES, load_env, load_settings

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def parse_args(argv=None):
    ap = argparse.ArgumentParser(prog="zendesk-export", description="Export a Zendesk Support account to JSON files.")
    ap.add_argument("--export-dir", default=None, help="Output folder (default: EXPORT_DIR or ./exported).")
    ap.add_argument("--only", default=None,
                    help=f"Comma-separated stages to run, in fixed order. Options: {', '.join(STAGES)}")
    ap.add_argument("--error-policy", choices=ERROR_POLICIES, default=None,
                    help="What to do with unexpected per-ticket errors (default: ERROR_POLICY or fail-fast).")
    ap.add_argument("--no-attachments", action="store_true", help="Do not download comment attachments.")
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    load_env()
    try:
        settings = load_settings().with_overrides(
            export_dir=args.export_dir,
            error_policy=args.error_policy,
            download_attachments=False if args.no_attachments else None,
        )
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
        logging.error("Configuration error: %s", e)
        return EXIT_CONFIG

    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO),
                        format="%(asctime)s | %(levelname)s | %(message)s")

    stages = None
    if args.only:
        stages = [p.strip().lower() for p in args.only.split(",") if p.strip()]
        unknown = [s for s in stages if s not in STAGES]
        if unknown or not stages:
            logging.error("Empty or invalid --only: use a comma list of %s", ", ".join(STAGES))
            return EXIT_CONFIG

    logging.info("Starting export | dir=%s, stages=%s, error_policy=%s, attachments=%s",
                 settings.export_dir, ",".join(stages or STAGES), settings.error_policy,
                 settings.download_attachments)
    orchestrator = ExportOrchestrator(settings, stages=stages)
    try:
        orchestrator.run()
    except ZendeskExportError as e:
        logging.error("Export aborted: %s", e)
        return EXIT_FAILED
    finally:
        orchestrator.client.close()
    logging.info("✅ Zendesk export complete.")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
