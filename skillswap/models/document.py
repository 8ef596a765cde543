from pydantic import BaseModel, ValidationError
from typing import Iterable, List, Optional, Type, TypeVar
from skillswap.utils.errors import ReadError
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="DocumentModel")


class DocumentModel(BaseModel):
    """
    Base for every Firestore-backed record.
    Documents are validated when they cross into the service instead of
    being passed around as raw dicts.
    """
    id: Optional[str] = None

    class Config:
        populate_by_name = True
        use_enum_values = True
        extra = "ignore"

    @classmethod
    def from_dict(cls: Type[T], doc_id: str, data: dict) -> T:
        try:
            return cls.model_validate({**(data or {}), "id": doc_id})
        except ValidationError as e:
            logger.warning(f"Invalid {cls.__name__} document '{doc_id}': {e.error_count()} error(s)")
            raise ReadError(f"Malformed {cls.__name__} document: {doc_id}") from e

    @classmethod
    def from_snapshot(cls: Type[T], snapshot) -> Optional[T]:
        if not snapshot.exists:
            return None
        return cls.from_dict(snapshot.id, snapshot.to_dict())


def parse_documents(model: Type[T], snapshots: Iterable) -> List[T]:
    """Convert query results, skipping documents that fail validation"""
    records = []
    for snapshot in snapshots:
        try:
            record = model.from_snapshot(snapshot)
        except ReadError:
            continue
        if record is not None:
            records.append(record)
    return records
