from fastapi import APIRouter, Depends, Query

from api.dependencies import get_reconciler
from core.models import ReconciliationReport
from core.reconciler import Reconciler

router = APIRouter(
    prefix="/maintenance",
    tags=["Maintenance"]
)


@router.get("/check", response_model=ReconciliationReport)
def check_references(reconciler: Reconciler = Depends(get_reconciler)):
    """Reports inconsistent back-references and dangling tale references without changing anything."""
    return reconciler.reconcile(dry_run=True)


@router.post("/reconcile", response_model=ReconciliationReport)
def reconcile_references(
    prune_dangling: bool = Query(False, description="Also remove references to SCPs that no longer exist."),
    reconciler: Reconciler = Depends(get_reconciler),
):
    """Rewrites every SCP's scp_tales from the tales' scp_ids."""
    return reconciler.reconcile(prune_dangling=prune_dangling)
