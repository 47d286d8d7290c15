# /core/errors.py

from typing import Iterable, List


class ArchiveError(Exception):
    """Base class for every error raised by the archive core."""


class MissingReferencesError(ArchiveError):
    """One or more referenced SCPs do not exist. Raised before any write."""
    def __init__(self, missing: Iterable[str]):
        self.missing: List[str] = sorted(set(missing))
        super().__init__(f"SCP(s) not found: {', '.join(self.missing)}")


class NotFoundError(ArchiveError):
    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} with id {key} not found.")


class NoFieldsProvidedError(ArchiveError):
    def __init__(self, kind: str = "document"):
        self.kind = kind
        super().__init__(f"No fields provided to update the {kind}.")


class NotModifiedError(ArchiveError):
    """The update matched a document but changed none of its fields."""
    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} with id {key} was not updated.")


class EntityAlreadyExistsError(ArchiveError):
    def __init__(self, scp_id: str):
        self.scp_id = scp_id
        super().__init__(f"SCP with scp_id {scp_id} already exists.")


class EntityReferencedError(ArchiveError):
    """Deletion refused because tales still point at the SCP."""
    def __init__(self, scp_id: str, tale_ids: Iterable[str]):
        self.scp_id = scp_id
        self.tale_ids = list(tale_ids)
        super().__init__(
            f"SCP with scp_id {scp_id} is still referenced by {len(self.tale_ids)} tale(s)."
        )


class StoreError(ArchiveError):
    """The document store is unreachable or a call to it failed."""


class DuplicateKeyError(StoreError):
    """An insert or update collided with a unique index."""
