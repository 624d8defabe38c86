# =============================================================================
# Base Models
# =============================================================================
# Shared base model for documents persisted in the metadata bucket.
# =============================================================================

"""Base model for camelCase JSON documents."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

__all__ = ["CamelModel"]


class CamelModel(BaseModel):
    """
    Base model for every document stored in the metadata bucket.

    Stored documents use camelCase keys (``assetId``, ``lastUpdatedTime``)
    while Python code uses snake_case attributes. Both spellings are accepted
    on input; ``to_document()`` always writes the camelCase form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_document(self) -> dict:
        """Serialize to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
