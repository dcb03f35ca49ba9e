"""Vector store layer — database, predicate filters, repositories, vector index."""

from quarry.store._repository import TableRepository
from quarry.store.contents import FileContentsRepo, NearestResult
from quarry.store.database import Database
from quarry.store.endpoints import EndpointRepo
from quarry.store.files import FilesRepo, describe_path
from quarry.store.filters import FilterExpression, and_, compile_sql, eq, in_, ne, not_in, or_
from quarry.store.index import VectorIndex

__all__ = [
    "Database",
    "EndpointRepo",
    "FileContentsRepo",
    "FilesRepo",
    "FilterExpression",
    "NearestResult",
    "TableRepository",
    "VectorIndex",
    "and_",
    "compile_sql",
    "describe_path",
    "eq",
    "in_",
    "ne",
    "not_in",
    "or_",
]
