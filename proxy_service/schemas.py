"""
Request models, one per proxied operation.

JSON bodies use the camelCase names clients already send (``mongodbUri``,
``returnDocument`` ...). Every model is validated before dispatch, so the
executor never probes for missing keys.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Document = Dict[str, Any]
# {"field": 1} or [["field", -1], ...]; directions may also be "asc"/"desc"
SortSpec = Union[Dict[str, Any], List[Any]]


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------- OPTIONS ----------------------


class FindOptions(_Model):
    sort: Optional[SortSpec] = None
    limit: Optional[int] = Field(default=None, ge=0)
    skip: Optional[int] = Field(default=None, ge=0)
    projection: Optional[Document] = None
    # legacy cursor-modifier spelling, same meaning as ``projection``
    project: Optional[Document] = None


class UpdateOptions(_Model):
    upsert: bool = False
    array_filters: Optional[List[Document]] = Field(default=None, alias="arrayFilters")
    hint: Optional[Union[str, Document]] = None


class FindOneAndUpdateOptions(_Model):
    return_document: Literal["before", "after"] = Field(default="before", alias="returnDocument")
    return_original: Optional[bool] = Field(default=None, alias="returnOriginal")
    upsert: bool = False
    projection: Optional[Document] = None
    sort: Optional[SortSpec] = None
    array_filters: Optional[List[Document]] = Field(default=None, alias="arrayFilters")

    @property
    def returns_updated(self) -> bool:
        if self.return_original is not None:
            return not self.return_original
        return self.return_document == "after"


class InsertManyOptions(_Model):
    ordered: bool = True
    bypass_document_validation: Optional[bool] = Field(
        default=None, alias="bypassDocumentValidation",
    )


# ---------------------- REQUESTS ----------------------


class MongoRequest(_Model):
    mongodb_uri: str = Field(alias="mongodbUri", min_length=1)
    db: str = Field(min_length=1)
    collection: str = Field(min_length=1)


class FindOneRequest(MongoRequest):
    filter: Document


class InsertOneRequest(MongoRequest):
    document: Document


class UpdateOneRequest(MongoRequest):
    filter: Document
    # update document or aggregation pipeline
    update: Union[Document, List[Document]]
    options: Optional[UpdateOptions] = None


class DeleteOneRequest(MongoRequest):
    filter: Document


class FindRequest(MongoRequest):
    filter: Optional[Document] = None
    options: Optional[FindOptions] = None


class FindOneAndUpdateRequest(MongoRequest):
    filter: Document
    update: Union[Document, List[Document]]
    options: Optional[FindOneAndUpdateOptions] = None


class InsertManyRequest(MongoRequest):
    documents: List[Document] = Field(min_length=1)
    options: Optional[InsertManyOptions] = None
