#!/usr/bin/env python
"""Expire quotes whose validity date has passed.

Usage:
    python backend/scripts/expire_quotes.py                  # expire quotes due before today
    python backend/scripts/expire_quotes.py --today 2026-01-31
    python backend/scripts/expire_quotes.py --dry-run        # list what would expire, change nothing

Meant for a daily cron entry; safe to run repeatedly.
"""
from __future__ import annotations
import os, sys, argparse
from datetime import date

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from parabellum import create_app, get_db  # type: ignore
from parabellum.models.quote import Quote
from parabellum.services import quote_lifecycle as lifecycle
from parabellum.services.quotes import expire_due_quotes


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Expire quotes past their validity date")
    p.add_argument('--today', type=date.fromisoformat, default=None, help='Reference date (YYYY-MM-DD), default: today')
    p.add_argument('--dry-run', action='store_true', help='Only list the quotes that would expire')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    today = args.today or date.today()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            if args.dry_run:
                due = (
                    session.query(Quote)
                    .filter(Quote.status.in_(lifecycle.NON_TERMINAL_STATUSES), Quote.valid_until < today)
                    .order_by(Quote.id)
                    .all()
                )
                for q in due:
                    print(f"[DRY-RUN] {q.quote_number} ({q.status}, valid until {q.valid_until.isoformat()})")
                print(f"[DRY-RUN] {len(due)} quote(s) would expire")
                return len(due)
            expired = expire_due_quotes(session, today)
            for q in expired:
                print(f"[EXPIRED] {q.quote_number}")
            print(f"[DONE] {len(expired)} quote(s) expired")
            return len(expired)
        finally:
            session.close()


if __name__ == '__main__':
    main()
