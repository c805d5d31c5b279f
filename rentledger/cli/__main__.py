from __future__ import annotations

import argparse

from rentledger.cli.seed_currencies import parse_rate_arg, seed_currencies
from rentledger.db import SessionLocal
from rentledger.domain.types import BillingPeriod
from rentledger.services import invoice_lifecycle as lifecycle


def main() -> None:
    p = argparse.ArgumentParser(prog="rentledger")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("seed-currencies", help="upsert currency rates into the base currency")
    s.add_argument("--rate", action="append", default=[], metavar="CODE=RATE", help="e.g. USD=15.42")

    g = sub.add_parser("generate", help="generate monthly invoices")
    g.add_argument("--year", type=int, required=True)
    g.add_argument("--month", type=int, required=True)

    sub.add_parser("recheck-overdue", help="flip past-due invoices to OVERDUE")

    st = sub.add_parser("stats", help="invoice statistics for a window of billing periods")
    st.add_argument("--start", required=True, help="YYYY-MM")
    st.add_argument("--end", required=True, help="YYYY-MM")

    args = p.parse_args()

    if args.cmd == "seed-currencies":
        out = seed_currencies(parse_rate_arg(r) for r in args.rate)
        print({"ok": True, "base": out.base, "created": out.created, "updated": out.updated})
        return

    db = SessionLocal()
    try:
        if args.cmd == "generate":
            res = lifecycle.generate_monthly(db, period=BillingPeriod(args.year, args.month))
            print(
                {
                    "ok": True,
                    "period": str(res.period),
                    "created": [i.invoice_number for i in res.created],
                    "skipped": res.skipped,
                    "errors": [{"tenancy_id": f.tenancy_id, "code": f.code, "message": f.message} for f in res.failures],
                }
            )
        elif args.cmd == "recheck-overdue":
            sweep = lifecycle.recheck_overdue_all(db)
            print({"ok": True, "checked": sweep.checked, "marked_overdue": sweep.marked_overdue})
        elif args.cmd == "stats":
            stats = lifecycle.get_statistics(
                db,
                window_start=BillingPeriod.parse(args.start),
                window_end=BillingPeriod.parse(args.end),
            )
            print(stats.as_dict())
    finally:
        db.close()


if __name__ == "__main__":
    main()
