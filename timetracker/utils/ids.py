"""ObjectId helpers."""
from bson import ObjectId
from bson.errors import InvalidId

from timetracker.errors import NotFoundError


def to_object_id(value: str, label: str) -> ObjectId:
    """
    Parse a path/body id, treating a malformed id as a missing document.

    Args:
        value: Hex string id
        label: Human name of the document, e.g. "Project"

    Raises:
        NotFoundError: If the id is not a valid ObjectId
    """
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(
            f"{label} not found",
            code=f"{label.lower().replace(' ', '_')}_not_found",
        )


def valid_object_ids(values) -> list[ObjectId]:
    """ObjectIds of the well-formed values, for ``$in`` lookups."""
    return [ObjectId(value) for value in values if ObjectId.is_valid(value)]
