"""
API — collections and queries.

    from pledge import api as A

    bands = A.Collection("bands", engine)
    doc = await bands.find_one({"name": "Slash"})
"""

from __future__ import annotations

from pledge.api._options import Options
from pledge.api._query import Query, SortSpec
from pledge.api._collection import Collection, Document, Criteria
from pledge.operation._memory import UpdateResult, DeleteResult

__all__ = (
    "Options",
    "Query",
    "SortSpec",
    "Collection",
    "Document",
    "Criteria",
    "UpdateResult",
    "DeleteResult",
)
