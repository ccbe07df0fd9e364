#!/usr/bin/env python3
"""
Seed vendor and PM directory records (local development / staging).

Input is a JSON file shaped like:

    {
      "pms": [{"pmId": "pm-1", "name": "Pat Manager", "email": "pat@example.com"}],
      "vendors": [{"vendorId": "V1", "name": "Volt Electric", "specialization": "Electrical", ...}]
    }

Usage:
    python backend/scripts/seed_directory.py seed.json [--dry-run] [--issue-tokens]

Requires DDB_TABLE_NAME (and AWS_ENDPOINT_URL for DynamoDB Local). With
--issue-tokens, prints a bearer token per seeded actor (needs JWT_SECRET).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import orjson

from leadhub.auth.tokens import issue_token
from leadhub.observability.logging import configure_logging, get_logger
from leadhub.repositories.directory import directory_repo

log = get_logger("seed_directory")


def _records(doc: dict[str, Any], key: str, id_field: str) -> list[dict[str, Any]]:
    out = []
    for rec in doc.get(key) or []:
        if not isinstance(rec, dict) or not str(rec.get(id_field) or "").strip():
            log.warning("seed_record_skipped", kind=key, reason=f"missing {id_field}")
            continue
        out.append(rec)
    return out


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("path", type=Path)
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--issue-tokens", action="store_true")
    args = parser.parse_args(argv)

    configure_logging(level="INFO")
    doc = orjson.loads(args.path.read_bytes())
    pms = _records(doc, "pms", "pmId")
    vendors = _records(doc, "vendors", "vendorId")

    if args.dry_run:
        log.info("seed_dry_run", pms=len(pms), vendors=len(vendors))
        return 0

    for pm in pms:
        directory_repo.put_pm(pm)
    for vendor in vendors:
        directory_repo.put_vendor(vendor)
    log.info("seed_complete", pms=len(pms), vendors=len(vendors))

    if args.issue_tokens:
        for pm in pms:
            print(f"pm\t{pm['pmId']}\t{issue_token(sub=pm['pmId'], role='pm', name=pm.get('name'))}")
        for vendor in vendors:
            print(f"vendor\t{vendor['vendorId']}\t{issue_token(sub=vendor['vendorId'], role='vendor')}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
