"""
Pull the remote MongoDB copy into the local card store.

Content fields follow the remote; local scheduling state is kept. Safe to
re-run: an interrupted or repeated sync changes nothing twice.

Usage:
    python -m scripts.sync_remote --user USER_ID --token TOKEN
"""

from __future__ import annotations

import argparse
import os

from enforcer import config
from enforcer.card_store import CardStore
from enforcer.errors import EnforcerError
from enforcer.reconciliation import AuthContext, ReconciliationEngine
from enforcer.remote import MongoRemoteStore


def sync(user_id: str, token: str) -> None:
    remote = MongoRemoteStore()
    engine = ReconciliationEngine(CardStore.open(), remote)
    try:
        result = engine.refresh_from_remote(AuthContext(user_id=user_id, token=token))
    finally:
        remote.close()

    print(f"Words added:     {result.words_added}")
    print(f"Words updated:   {result.words_updated}")
    print(f"Cards added:     {result.cards_added} (+{result.cards_seeded} seeded)")
    print(f"Reviews added:   {result.reviews_added}")
    print(f"Reviews skipped: {result.reviews_skipped}")


def main():
    parser = argparse.ArgumentParser(description="Sync the local card store from MongoDB")
    parser.add_argument("--user", default=os.getenv("ENFORCER_USER_ID"), help="Signed-in user id")
    parser.add_argument("--token", default=os.getenv("ENFORCER_TOKEN"), help="Session token")

    args = parser.parse_args()
    config.configure_logging()

    try:
        sync(args.user or "", args.token or "")
    except EnforcerError as exc:
        parser.exit(1, f"✗ Sync failed: {exc}\n")


if __name__ == "__main__":
    main()
