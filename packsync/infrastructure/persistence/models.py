"""Peewee ORM models for the local packsync database."""

from __future__ import annotations

import datetime as _dt

import peewee
from playhouse.sqlite_ext import JSONField

# A proxy that will be initialised with the concrete database instance at runtime.
database_proxy: peewee.DatabaseProxy = peewee.DatabaseProxy()


def naive_utcnow() -> _dt.datetime:
    """Naive UTC now; SQLite stores datetimes without offsets."""
    return _dt.datetime.now(_dt.UTC).replace(tzinfo=None)


class BaseModel(peewee.Model):
    """Base Peewee model bound to the lazily initialised database proxy."""

    class Meta:
        database = database_proxy
        legacy_table_names = False


class PendingOperationRecord(BaseModel):
    """A mutation recorded locally until the server confirms it."""

    id = peewee.AutoField()
    operation = peewee.TextField()
    entity = peewee.TextField()
    entity_id = peewee.IntegerField(null=True)
    payload = JSONField(default=dict)
    packing_list_id = peewee.IntegerField()
    created_at = peewee.DateTimeField(default=naive_utcnow)

    class Meta:
        table_name = "pending_operations"
        indexes = ((("packing_list_id",), False),)


class LocalStorageEntry(BaseModel):
    """Key/value JSON entry persisted across sessions."""

    key = peewee.TextField(primary_key=True)
    value = JSONField(null=True)
    updated_at = peewee.DateTimeField(default=naive_utcnow)

    class Meta:
        table_name = "local_storage"


ALL_MODELS: tuple[type[BaseModel], ...] = (PendingOperationRecord, LocalStorageEntry)
