#!/usr/bin/env python3
"""
Registry maintenance for the plate gate.

Manages the vehicles table and shows the access log of the SQLite database
the gate reads from.

Usage:
    python tools/registry_admin.py add POX4G21 "Carlos Costa" --model "Honda Civic" --color Silver
    python tools/registry_admin.py deactivate POX4G21
    python tools/registry_admin.py list [--all]
    python tools/registry_admin.py history --limit 20
"""

import argparse
import os
import sys
from datetime import datetime

# Add project directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from recognition.normalizer import CodeNormalizer
from storage.database import Database, RegistryError

DEFAULT_DB = "data/anpr.sqlite"


def cmd_add(db: Database, args) -> int:
    code = args.code.strip().upper()
    if not args.force and not CodeNormalizer().is_canonical(code):
        print(f"❌ {code} does not match the plate grammar (use --force to store it anyway)")
        return 1
    vehicle_id = db.add_vehicle(code, args.owner, vehicle_model=args.model or "", vehicle_color=args.color)
    if vehicle_id is None:
        print(f"❌ Could not register {code}")
        return 1
    print(f"✅ Registered {code} (id={vehicle_id})")
    return 0


def cmd_deactivate(db: Database, args) -> int:
    code = args.code.strip().upper()
    if db.deactivate_vehicle(code):
        print(f"✅ Deactivated {code}")
        return 0
    print(f"⚠️  No active vehicle with plate {code}")
    return 1


def cmd_list(db: Database, args) -> int:
    vehicles = db.list_vehicles(include_inactive=args.all)
    if not vehicles:
        print("(no vehicles)")
        return 0
    print(f"{'ID':>4}  {'PLATE':<8}  {'ACTIVE':<6}  {'OWNER / MODEL':<40}  COLOR")
    for v in vehicles:
        print(f"{v.entry_id:>4}  {v.code:<8}  {'yes' if v.active else 'no':<6}  {v.info:<40}  {v.vehicle_color or ''}")
    return 0


def cmd_history(db: Database, args) -> int:
    rows = db.get_history(limit=args.limit)
    if not rows:
        print("(no access log entries)")
        return 0
    for r in rows:
        when = datetime.fromtimestamp(r["timestamp"]).strftime("%Y-%m-%d %H:%M:%S")
        status = "GRANTED" if r["authorized"] else "DENIED "
        matched = f" -> {r['matched_code']}" if r["matched_code"] and r["matched_code"] != r["plate_code"] else ""
        print(f"{when}  {status}  {r['plate_code']}{matched}  {r['reason']}  ({r['vehicle_info']})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage the plate gate vehicle registry")
    parser.add_argument("--db", default=DEFAULT_DB, help=f"SQLite database path (default: {DEFAULT_DB})")
    sub = parser.add_subparsers(dest="command", required=True)

    p_add = sub.add_parser("add", help="Register (or re-activate) a vehicle")
    p_add.add_argument("code", help="Plate code, e.g. ABC1D23")
    p_add.add_argument("owner", help="Owner name")
    p_add.add_argument("--model", help="Vehicle model")
    p_add.add_argument("--color", help="Vehicle colour")
    p_add.add_argument("--force", action="store_true", help="Skip the plate grammar check")
    p_add.set_defaults(func=cmd_add)

    p_del = sub.add_parser("deactivate", help="Soft-delete a vehicle")
    p_del.add_argument("code")
    p_del.set_defaults(func=cmd_deactivate)

    p_list = sub.add_parser("list", help="List registered vehicles")
    p_list.add_argument("--all", action="store_true", help="Include deactivated vehicles")
    p_list.set_defaults(func=cmd_list)

    p_hist = sub.add_parser("history", help="Show recent access decisions")
    p_hist.add_argument("--limit", type=int, default=50)
    p_hist.set_defaults(func=cmd_history)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    db = Database(args.db)
    try:
        db.initialize()
        return args.func(db, args)
    except RegistryError as e:
        print(f"❌ Registry error: {e}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
