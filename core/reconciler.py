# /core/reconciler.py

from typing import Dict, List

from core.database import DocumentStoreInterface
from core.logger import get_logger
from core.models import DanglingReference, EntityRepair, ReconciliationReport
from core.reference_manager import BACK_REFS, FORWARD_REFS, SCP_KEY

logger = get_logger(__name__)


class Reconciler:
    """
    Rebuilds every SCP's ``scp_tales`` from the tales' ``scp_ids``.

    Tales are the source of truth: a back-reference is kept only if the tale it
    names still lists the SCP. Forward references to SCPs that no longer exist are
    reported, and removed from the tales when ``prune_dangling`` is set.
    """
    def __init__(self, store: DocumentStoreInterface, scp_collection: str = "SCPs", tale_collection: str = "SCPTales"):
        self.store = store
        self.scp_collection = scp_collection
        self.tale_collection = tale_collection

    def reconcile(self, prune_dangling: bool = False, dry_run: bool = False) -> ReconciliationReport:
        """
        Scans both collections and repairs the back-references.

        Args:
            prune_dangling: Also strip references to missing SCPs out of the tales.
            dry_run: Report what would change without writing anything.

        Returns:
            A ReconciliationReport describing every repair and dangling reference.
        """
        logger.info("Starting reference reconciliation.", extra={"dry_run": dry_run, "prune_dangling": prune_dangling})

        scps = []
        unkeyed: List[str] = []
        for scp in self.store.find(self.scp_collection, {}):
            if scp.get(SCP_KEY):
                scps.append(scp)
            else:
                unkeyed.append(scp["_id"])
        if unkeyed:
            logger.warning("Skipping SCP documents without a scp_id.", extra={"ids": unkeyed})
        tales = self.store.find(self.tale_collection, {})

        # scp key -> tale ids that should appear in its scp_tales, in tale order
        expected: Dict[str, List[str]] = {scp[SCP_KEY]: [] for scp in scps}
        dangling: List[DanglingReference] = []
        for tale in tales:
            tale_id = tale["_id"]
            for scp_id in dict.fromkeys(tale.get(FORWARD_REFS) or []):
                if scp_id in expected:
                    expected[scp_id].append(tale_id)
                else:
                    dangling.append(DanglingReference(tale_id=tale_id, scp_id=scp_id))

        repaired: List[EntityRepair] = []
        for scp in scps:
            scp_id = scp[SCP_KEY]
            current = scp.get(BACK_REFS) or []
            wanted = expected[scp_id]
            if current == list(dict.fromkeys(current)) and set(current) == set(wanted):
                continue

            wanted_set, current_set = set(wanted), set(current)
            kept = [tale_id for tale_id in dict.fromkeys(current) if tale_id in wanted_set]
            added = [tale_id for tale_id in wanted if tale_id not in current_set]
            removed = sorted(current_set - wanted_set)
            repaired.append(EntityRepair(scp_id=scp_id, added=added, removed=removed))

            if not dry_run:
                self.store.update_fields(self.scp_collection, {SCP_KEY: scp_id}, {BACK_REFS: kept + added})

        pruned = 0
        if prune_dangling and not dry_run:
            for ref in dangling:
                pruned += self.store.pull(self.tale_collection, {"_id": ref.tale_id}, FORWARD_REFS, ref.scp_id)

        report = ReconciliationReport(
            dry_run=dry_run,
            entities_scanned=len(scps) + len(unkeyed),
            tales_scanned=len(tales),
            repaired=repaired,
            dangling=dangling,
            pruned=pruned,
            unkeyed=unkeyed,
            consistent=not repaired and not dangling and not unkeyed,
        )
        logger.info(
            "Reference reconciliation finished.",
            extra={"repaired": len(repaired), "dangling": len(dangling), "pruned": pruned},
        )
        return report
