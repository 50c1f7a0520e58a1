# src/veilbin/scripts/administration.py
"""
Veilbin administration tool.

Maintenance tasks run directly against the configured storage backend:

  veilbin-admin --purge            delete expired pastes, ignoring the purge limiter
  veilbin-admin --delete ID        delete one paste and its discussion
  veilbin-admin --list-ids         print the id of every stored paste
  veilbin-admin --statistics       summarise the stored pastes
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from collections.abc import Sequence
from typing import Any

from veilbin.core.errors import PasteError
from veilbin.core.settings import Settings
from veilbin.db.time import epoch_now
from veilbin.services import Model
from veilbin.utils.hash import is_valid_id

# Pastes deleted per batch when purging from the command line.
PURGE_BATCH_SIZE = 1_000


def say(msg: str) -> None:
    print(f"[veilbin-admin] {msg}")


def fail(msg: str) -> None:
    print(f"[veilbin-admin][FAIL] {msg}", file=sys.stderr)


def purge(model: Model) -> int:
    """Delete every expired paste, one batch at a time."""
    store = model.get_store()
    total = 0
    while True:
        deleted = store.purge(PURGE_BATCH_SIZE)
        total += deleted
        if deleted < PURGE_BATCH_SIZE:
            return total


def delete(model: Model, paste_id: str) -> bool:
    """Delete one paste, returning False if it was not stored."""
    paste = model.get_paste(paste_id)
    if not paste.exists():
        return False
    paste.delete()
    return True


def classify(paste: dict[str, Any], now: int) -> list[str]:
    """Return the statistics buckets a stored paste falls into."""
    meta = paste.get("meta") or {}
    adata = paste.get("adata")
    buckets: list[str] = []

    expire_date = meta.get("expire_date")
    if expire_date and int(expire_date) < now:
        buckets.append("expired")

    if isinstance(adata, list) and len(adata) == 4:
        if adata[3] == 1:
            buckets.append("burn_after_reading")
        if adata[2] == 1:
            buckets.append("discussions")
    elif "data" in paste:
        buckets.append("legacy")
        if meta.get("burnafterreading"):
            buckets.append("burn_after_reading")
        if meta.get("opendiscussion"):
            buckets.append("discussions")
    else:
        buckets.append("unknown")
    return buckets


def statistics(model: Model) -> Counter[str]:
    """Walk all stored pastes and count them per bucket."""
    store = model.get_store()
    now = epoch_now()
    counts: Counter[str] = Counter()
    for paste_id in store.get_all_pastes():
        paste = store.read(paste_id)
        if paste is None:
            continue
        counts["total"] += 1
        counts.update(classify(paste, now))
    return counts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="veilbin-admin",
        description="Maintenance tasks for a Veilbin storage backend.",
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--purge", action="store_true", help="delete all expired pastes")
    group.add_argument("--delete", metavar="ID", help="delete the paste with the given id")
    group.add_argument("--list-ids", action="store_true", help="list the ids of all pastes")
    group.add_argument(
        "--statistics",
        action="store_true",
        help="report counts of expired, burn after reading and discussion pastes",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log at debug level")
    return parser


def main(argv: Sequence[str] | None = None, *, model: Model | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if model is None:
        model = Model(Settings())

    if args.purge:
        say(f"Purged {purge(model)} expired pastes")
        return 0

    if args.delete is not None:
        if not is_valid_id(args.delete):
            fail(f"Invalid paste id: {args.delete}")
            return 1
        try:
            deleted = delete(model, args.delete)
        except PasteError as exc:
            fail(exc.message)
            return 1
        if not deleted:
            fail(f"Paste {args.delete} does not exist")
            return 1
        say(f"Deleted paste {args.delete}")
        return 0

    if args.list_ids:
        for paste_id in model.get_store().get_all_pastes():
            print(paste_id)
        return 0

    counts = statistics(model)
    for bucket in ("total", "expired", "burn_after_reading", "discussions", "legacy", "unknown"):
        say(f"{bucket.replace('_', ' ')}: {counts[bucket]}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
