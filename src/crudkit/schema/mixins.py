"""Standard field groups embedded by most models.

    class User(Model):
        fields = (BASE_MODEL, FieldSpec("Name", "string"), RECORD_MODEL, SOFT_DELETE_MODEL)
"""

from crudkit.schema.models import FieldGroup, FieldSpec
from crudkit.schema.types import FieldType

UUID_MODEL = FieldGroup(
    "UUIDModel",
    (FieldSpec("UUID", FieldType.STRING, tag="size:36;uniqueIndex;not null;column:uuid"),),
)

BASE_MODEL = FieldGroup(
    "BaseModel",
    (
        FieldSpec("ID", FieldType.UINT, tag="primaryKey;autoIncrement;column:id"),
        UUID_MODEL,
    ),
)

RECORD_CREATED = FieldGroup(
    "RecordCreatedModel",
    (
        FieldSpec("CreatedAt", FieldType.TIMESTAMP, tag="autoCreateTime"),
        FieldSpec("CreatedBy", FieldType.UINT, tag="column:created_by", optional=True),
    ),
)

RECORD_UPDATED = FieldGroup(
    "RecordUpdatedModel",
    (
        FieldSpec("UpdatedAt", FieldType.TIMESTAMP, tag="autoUpdateTime"),
        FieldSpec("UpdatedBy", FieldType.UINT, tag="column:updated_by", optional=True),
    ),
)

RECORD_MODEL = FieldGroup("RecordModel", (RECORD_CREATED, RECORD_UPDATED))

SOFT_DELETE_MODEL = FieldGroup(
    "SoftDeleteModel",
    (
        FieldSpec("DeletedAt", FieldType.TIMESTAMP, tag="index;column:deleted_at", optional=True),
        FieldSpec("DeletedBy", FieldType.UINT, tag="column:deleted_by", optional=True),
    ),
)

__all__ = [
    "BASE_MODEL",
    "UUID_MODEL",
    "RECORD_CREATED",
    "RECORD_UPDATED",
    "RECORD_MODEL",
    "SOFT_DELETE_MODEL",
]
