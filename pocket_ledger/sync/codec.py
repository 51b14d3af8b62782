"""
Record Codec

The boundary between loosely typed remote records and the typed
entities the ledgers hold. Incoming records are parsed through the
pydantic models; anything malformed is rejected as a ValidationError
instead of leaking into the cache.
"""

from typing import Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from pocket_ledger.errors import ValidationError
from pocket_ledger.models.shared import Person, SharedEntry
from pocket_ledger.models.transaction import Transaction
from pocket_ledger.services.storage.interface import Record


ModelT = TypeVar("ModelT", bound=BaseModel)


def to_record(entity: BaseModel) -> Record:
    """JSON-compatible field values, without the id (the store owns ids)."""
    return entity.model_dump(mode="json", exclude={"id"})


def balance_patch(person: Person) -> Record:
    return person.model_dump(mode="json", include={"cached_balance", "last_activity_at"})


def parse_record(model: Type[ModelT], record: Record) -> ModelT:
    """
    Parse one remote record into an entity.

    Raises:
        ValidationError: If the record has no id or fails the schema
    """
    if not isinstance(record, dict):
        raise ValidationError(f"Expected a record, got {type(record).__name__}")
    record_id = record.get("id")
    if record_id in (None, ""):
        raise ValidationError(f"{model.__name__} record has no id", field="id")
    data = {key: value for key, value in record.items() if value is not None}
    data["id"] = str(record_id)
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


def parse_transaction(record: Record) -> Transaction:
    return parse_record(Transaction, record)


def parse_shared_entry(record: Record) -> SharedEntry:
    return parse_record(SharedEntry, record)


def parse_person(record: Record) -> Person:
    return parse_record(Person, record)
