# binlog_client/__init__.py
from .client import BinlogClient
from .correlator import EventCorrelator, is_ddl
from .dispatcher import EventDispatcher
from .errors import (
    BinlogClientError,
    ColumnCountMismatch,
    ConfigurationError,
    MissingTableMap,
    PublisherFailed,
    ReplicationStreamError,
    SchemaQueryFailed,
    UnknownTable,
)
from .event_bus import LocalEventBus, Message
from .models import DeleteRows, Query, Rotate, TableMap, UpdateRows, WriteRows
from .options import BinlogClientOptions
from .read_stream import Pump, WriteQueue
from .record_builder import RecordBuilder
from .schema_resolver import SchemaResolver

__all__ = [
    "BinlogClient", "BinlogClientOptions",
    "EventCorrelator", "EventDispatcher", "RecordBuilder", "SchemaResolver", "is_ddl",
    "LocalEventBus", "Message", "Pump", "WriteQueue",
    "Rotate", "TableMap", "WriteRows", "UpdateRows", "DeleteRows", "Query",
    "BinlogClientError", "ConfigurationError", "MissingTableMap", "UnknownTable",
    "ColumnCountMismatch", "SchemaQueryFailed", "PublisherFailed", "ReplicationStreamError",
]
