from fastapi import APIRouter, Depends, Query

from api.dependencies import get_reference_manager
from core.config import settings
from core.models import SCP, SCPCreate, SCPPage, SCPUpdate, MessageResponse
from core.reference_manager import ReferenceManager

router = APIRouter(
    prefix="/SCPs",
    tags=["SCPs"]
)


@router.get("", response_model=SCPPage)
def get_scps(
    scp_id: str | None = Query(None, description="Fetch a single SCP by its key."),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    manager: ReferenceManager = Depends(get_reference_manager),
):
    """Lists SCPs page by page, or looks up one SCP when ``scp_id`` is given."""
    if scp_id:
        scp = SCP.from_document(manager.get_scp(scp_id))
        return SCPPage(total=1, skip=0, limit=1, items=[scp])

    documents, total = manager.list_scps(skip=skip, limit=limit)
    return SCPPage(total=total, skip=skip, limit=limit, items=[SCP.from_document(doc) for doc in documents])


@router.get("/{scp_id}", response_model=SCP)
def get_scp(scp_id: str, manager: ReferenceManager = Depends(get_reference_manager)):
    return SCP.from_document(manager.get_scp(scp_id))


@router.post("", response_model=SCP, status_code=201)
def add_scp(new_scp: SCPCreate, manager: ReferenceManager = Depends(get_reference_manager)):
    """Adds a new SCP. It starts with no tales referencing it."""
    return SCP.from_document(manager.create_scp(new_scp.model_dump(exclude_none=True)))


@router.put("/{scp_id}", response_model=SCP)
def update_scp(scp_id: str, update: SCPUpdate, manager: ReferenceManager = Depends(get_reference_manager)):
    """Updates only the fields present in the body."""
    patch = update.model_dump(exclude_none=True)
    return SCP.from_document(manager.update_scp(scp_id, patch))


@router.delete("/{scp_id}", response_model=MessageResponse)
def delete_scp(scp_id: str, manager: ReferenceManager = Depends(get_reference_manager)):
    manager.delete_scp(scp_id)
    return MessageResponse(message=f"SCP with scp_id {scp_id} deleted successfully!")
