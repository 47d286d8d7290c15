# /run_repair.py

import argparse
import json
import sys

from dotenv import load_dotenv

from core.config import settings
from core.database import MongoDocumentStore
from core.errors import StoreError
from core.reconciler import Reconciler


def main(argv=None):
    """
    Recomputes every SCP's back-references from the tales, for use after a write
    failed halfway and left the two collections out of step.
    """
    load_dotenv()

    parser = argparse.ArgumentParser(description="Repair SCP <-> tale references.")
    parser.add_argument("--dry-run", action="store_true", help="Only report what would change.")
    parser.add_argument("--prune-dangling", action="store_true", help="Remove tale references to missing SCPs.")
    args = parser.parse_args(argv)

    store = MongoDocumentStore(settings.MONGO_URI, settings.MONGO_DB_NAME, timeout_ms=settings.MONGO_TIMEOUT_MS)
    try:
        reconciler = Reconciler(store, settings.SCP_COLLECTION, settings.TALE_COLLECTION)
        report = reconciler.reconcile(prune_dangling=args.prune_dangling, dry_run=args.dry_run)
    except StoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

    print(json.dumps(report.model_dump(), indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
