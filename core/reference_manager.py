# /core/reference_manager.py

from typing import Any, Dict, Iterable, List, Set, Tuple

from core.database import DocumentStoreInterface
from core.errors import (
    DuplicateKeyError,
    EntityAlreadyExistsError,
    EntityReferencedError,
    MissingReferencesError,
    NoFieldsProvidedError,
    NotFoundError,
    NotModifiedError,
)
from core.logger import get_logger

logger = get_logger(__name__)

# --- Constants ---
SCP_KEY = "scp_id"          # unique key of an SCP
BACK_REFS = "scp_tales"     # SCP field: ids of the tales pointing at it
FORWARD_REFS = "scp_ids"    # Tale field: keys of the SCPs it points at

DELETE_POLICIES = ("tolerate", "block", "detach")


class ReferenceManager:
    """
    Mediates every write to the SCP and tale collections so that each tale's
    ``scp_ids`` and each SCP's ``scp_tales`` stay exact inverses.

    The protocols issue several independent store calls and are not transactional.
    Validation runs before the first write, so a rejected request leaves no trace.
    A store failure after a write has committed is re-raised as is; nothing is
    rolled back and ``Reconciler`` is the way to repair what it leaves behind.
    """
    def __init__(
        self,
        store: DocumentStoreInterface,
        scp_collection: str = "SCPs",
        tale_collection: str = "SCPTales",
        delete_policy: str = "tolerate",
    ):
        if delete_policy not in DELETE_POLICIES:
            raise ValueError(f"Unknown SCP delete policy '{delete_policy}'. Expected one of {DELETE_POLICIES}.")
        self.store = store
        self.scp_collection = scp_collection
        self.tale_collection = tale_collection
        self.delete_policy = delete_policy

    # --- Reference validation ---

    def validate_references(self, scp_ids: Iterable[str]) -> Set[str]:
        """Returns the keys in ``scp_ids`` that name no existing SCP. Empty means all valid."""
        missing = set()
        for scp_id in set(scp_ids):
            if self.store.find_one(self.scp_collection, {SCP_KEY: scp_id}) is None:
                missing.add(scp_id)
        return missing

    def _require_references(self, scp_ids: Iterable[str]):
        missing = self.validate_references(scp_ids)
        if missing:
            logger.warning("Rejected write referencing unknown SCPs.", extra={"missing": sorted(missing)})
            raise MissingReferencesError(missing)

    # --- Back-reference maintenance ---

    def _link(self, tale_id: str, scp_ids: Iterable[str]):
        for scp_id in scp_ids:
            self.store.add_to_set(self.scp_collection, {SCP_KEY: scp_id}, BACK_REFS, tale_id)

    def _unlink(self, tale_id: str, scp_ids: Iterable[str]):
        for scp_id in scp_ids:
            self.store.pull(self.scp_collection, {SCP_KEY: scp_id}, BACK_REFS, tale_id)

    @staticmethod
    def diff_references(old: Iterable[str], new: Iterable[str]) -> Tuple[List[str], List[str]]:
        """Returns ``(removed, added)`` keys between two reference lists, each key once."""
        old_keys, new_keys = set(old), set(new)
        return sorted(old_keys - new_keys), sorted(new_keys - old_keys)

    # --- Tales ---

    def get_tale(self, tale_id: str) -> Dict[str, Any]:
        tale = self.store.find_one(self.tale_collection, {"_id": tale_id})
        if tale is None:
            raise NotFoundError("Tale", tale_id)
        return tale

    def list_tales(self, skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        tales = self.store.find(self.tale_collection, {}, skip=skip, limit=limit)
        return tales, self.store.count_documents(self.tale_collection, {})

    def create_tale(self, fields: Dict[str, Any], scp_ids: List[str]) -> str:
        """
        Validates every referenced SCP, inserts the tale, then adds its id to the
        back-references of each SCP it points at.

        Returns:
            The store-assigned id of the new tale.
        """
        self._require_references(scp_ids)

        document = {**fields, FORWARD_REFS: list(scp_ids)}
        tale_id = self.store.insert_one(self.tale_collection, document)
        self._link(tale_id, dict.fromkeys(scp_ids))

        logger.info("Created tale.", extra={"tale_id": tale_id, "scp_ids": list(scp_ids)})
        return tale_id

    def update_tale(self, tale_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge-patches a tale. When ``scp_ids`` is part of the patch, only the SCPs that
        left the list lose the back-reference and only the ones that joined gain it.

        Returns:
            The tale as it reads after the patch.
        """
        if not patch:
            raise NoFieldsProvidedError("tale")

        existing = self.get_tale(tale_id)
        references_changed = FORWARD_REFS in patch
        if references_changed:
            self._require_references(patch[FORWARD_REFS])

        self.store.update_fields(self.tale_collection, {"_id": tale_id}, patch)

        if references_changed:
            removed, added = self.diff_references(existing.get(FORWARD_REFS) or [], patch[FORWARD_REFS])
            self._unlink(tale_id, removed)
            self._link(tale_id, added)
            logger.info(
                "Updated tale references.",
                extra={"tale_id": tale_id, "unlinked": removed, "linked": added},
            )
        else:
            logger.info("Updated tale.", extra={"tale_id": tale_id, "fields": sorted(patch)})

        return {**existing, **patch}

    def delete_tale(self, tale_id: str):
        """Deletes a tale, then pulls its id out of every SCP it referenced."""
        tale = self.get_tale(tale_id)
        self.store.delete_one(self.tale_collection, {"_id": tale_id})
        self._unlink(tale_id, set(tale.get(FORWARD_REFS) or []))
        logger.info("Deleted tale.", extra={"tale_id": tale_id})

    # --- SCPs ---

    def get_scp(self, scp_id: str) -> Dict[str, Any]:
        scp = self.store.find_one(self.scp_collection, {SCP_KEY: scp_id})
        if scp is None:
            raise NotFoundError("SCP", scp_id)
        return scp

    def list_scps(self, skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        scps = self.store.find(self.scp_collection, {}, skip=skip, limit=limit)
        return scps, self.store.count_documents(self.scp_collection, {})

    def create_scp(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        scp_id = fields[SCP_KEY]
        if self.store.find_one(self.scp_collection, {SCP_KEY: scp_id}) is not None:
            raise EntityAlreadyExistsError(scp_id)

        # Back-references are owned here, never taken from the caller.
        document = {**fields, BACK_REFS: []}
        try:
            self.store.insert_one(self.scp_collection, document)
        except DuplicateKeyError as e:
            raise EntityAlreadyExistsError(scp_id) from e

        logger.info("Created SCP.", extra={"scp_id": scp_id})
        return document

    def update_scp(self, scp_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge-patches an SCP. Renaming its key rewrites the key inside every tale
        that references it, so the forward references follow the rename.
        """
        if not patch:
            raise NoFieldsProvidedError("SCP")

        existing = self.get_scp(scp_id)
        new_key = patch.get(SCP_KEY, scp_id)
        renamed = new_key != scp_id
        if renamed and self.store.find_one(self.scp_collection, {SCP_KEY: new_key}) is not None:
            raise EntityAlreadyExistsError(new_key)

        try:
            modified = self.store.update_fields(self.scp_collection, {SCP_KEY: scp_id}, patch)
        except DuplicateKeyError as e:
            raise EntityAlreadyExistsError(new_key) from e
        if modified == 0:
            raise NotModifiedError("SCP", scp_id)

        if renamed:
            for tale_id in existing.get(BACK_REFS) or []:
                tale = self.store.find_one(self.tale_collection, {"_id": tale_id})
                if tale is None:
                    continue
                refs = [new_key if ref == scp_id else ref for ref in tale.get(FORWARD_REFS) or []]
                self.store.update_fields(self.tale_collection, {"_id": tale_id}, {FORWARD_REFS: refs})
            logger.info("Renamed SCP.", extra={"scp_id": scp_id, "new_scp_id": new_key})
        else:
            logger.info("Updated SCP.", extra={"scp_id": scp_id, "fields": sorted(patch)})

        return {**existing, **patch}

    def delete_scp(self, scp_id: str):
        """
        Deletes an SCP according to ``delete_policy``:
        ``tolerate`` leaves tales pointing at the missing key, ``block`` refuses while
        any tale references it, ``detach`` strips the key from each referencing tale.
        """
        existing = self.get_scp(scp_id)
        referencing = existing.get(BACK_REFS) or []
        if referencing and self.delete_policy == "block":
            raise EntityReferencedError(scp_id, referencing)

        self.store.delete_one(self.scp_collection, {SCP_KEY: scp_id})

        if referencing and self.delete_policy == "detach":
            for tale_id in referencing:
                self.store.pull(self.tale_collection, {"_id": tale_id}, FORWARD_REFS, scp_id)
        elif referencing:
            logger.warning(
                "Deleted SCP that tales still reference.",
                extra={"scp_id": scp_id, "tale_ids": list(referencing)},
            )
        logger.info("Deleted SCP.", extra={"scp_id": scp_id, "policy": self.delete_policy})
