import argparse
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.config import MATCH_POOL_CAP
from app.database import SessionLocal
from app.services.events import log_matching_run_event
from app.services.runner import run_matching
from app.services.stores import SqlMatchStore, SqlProfileStore


def main() -> None:
    parser = argparse.ArgumentParser(description="Run one stable matching pass over dating-enabled profiles")
    parser.add_argument("--pool-cap", type=int, default=MATCH_POOL_CAP)
    parser.add_argument("--dry-run", action="store_true", help="compute matches without writing them")
    parser.add_argument("--log-level", type=str, default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")

    with SessionLocal() as db:
        result = run_matching(SqlProfileStore(db), SqlMatchStore(db), pool_cap=args.pool_cap, persist=not args.dry_run)
        if not args.dry_run:
            log_matching_run_event(db, event_type="matching_run_cli", payload={**result.summary(), "message": result.message})
            db.commit()

    print(result.message)
    for k, v in result.summary().items():
        print(f"- {k}: {v}")
    pairs = result.discovered if args.dry_run else result.created
    for pair in pairs:
        print(f"  {pair.a_id} <-> {pair.b_id} ({pair.compatibility_score})")


if __name__ == "__main__":
    main()
