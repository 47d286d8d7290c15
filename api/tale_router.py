from fastapi import APIRouter, Depends, Query

from api.dependencies import get_reference_manager
from core.config import settings
from core.models import Tale, TaleCreate, TalePage, TaleUpdate, MessageResponse
from core.reference_manager import ReferenceManager

router = APIRouter(
    prefix="/SCPTales",
    tags=["SCP Tales"]
)


@router.get("", response_model=TalePage)
def get_tales(
    tale_id: str | None = Query(None, description="Fetch a single tale by its id."),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    manager: ReferenceManager = Depends(get_reference_manager),
):
    if tale_id:
        tale = Tale.from_document(manager.get_tale(tale_id))
        return TalePage(total=1, skip=0, limit=1, items=[tale])

    documents, total = manager.list_tales(skip=skip, limit=limit)
    return TalePage(total=total, skip=skip, limit=limit, items=[Tale.from_document(doc) for doc in documents])


@router.get("/{tale_id}", response_model=Tale)
def get_tale(tale_id: str, manager: ReferenceManager = Depends(get_reference_manager)):
    return Tale.from_document(manager.get_tale(tale_id))


@router.post("", response_model=Tale, status_code=201)
def add_tale(new_tale: TaleCreate, manager: ReferenceManager = Depends(get_reference_manager)):
    """
    Adds a tale and links it to every SCP in ``scp_ids``.
    Fails with 400 and writes nothing if any of those SCPs does not exist.
    """
    fields = new_tale.model_dump(exclude={"scp_ids"}, exclude_none=True)
    tale_id = manager.create_tale(fields, new_tale.scp_ids)
    return Tale(id=tale_id, **fields, scp_ids=new_tale.scp_ids)


@router.put("/{tale_id}", response_model=Tale)
def update_tale(tale_id: str, update: TaleUpdate, manager: ReferenceManager = Depends(get_reference_manager)):
    """Updates only the fields present in the body, relinking SCPs when ``scp_ids`` changes."""
    patch = update.model_dump(exclude_none=True)
    return Tale.from_document(manager.update_tale(tale_id, patch))


@router.delete("/{tale_id}", response_model=MessageResponse)
def delete_tale(tale_id: str, manager: ReferenceManager = Depends(get_reference_manager)):
    manager.delete_tale(tale_id)
    return MessageResponse(message=f"Tale with tale_id {tale_id} deleted successfully!")
