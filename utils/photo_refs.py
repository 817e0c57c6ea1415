"""Photo reference codec — variable-length photo lists in a single text column.

A finding stores each of its photo lists (before / after) in one nullable
string field. Three shapes exist in the wild and all must keep working:

    None                       no photos
    "https://…/a.jpg"          exactly one photo (legacy single-photo rows)
    '["https://…/a.jpg",…]'    two or more photos, JSON array

``encode`` always produces the shortest of these shapes; ``decode`` accepts all
three and never raises. A literal URI that itself starts with ``[`` and parses
as a JSON array of strings cannot be told apart from the array form; that
ambiguity is inherited from the stored data and is not resolved here.
"""
import json
import logging
from collections.abc import Sequence

from models.photo_set import EmptyPhotoSet, ManyPhotos, SinglePhoto, photo_set_from_uris

logger = logging.getLogger(__name__)

# Byte-compatible with the JSON.stringify output already stored in the column
_JSON_SEPARATORS = (",", ":")


def encode(uris: Sequence[str]) -> str | None:
    """Serialize an ordered list of URIs into the column value. Empty strings are dropped."""
    return serialize_photo_set(photo_set_from_uris(uris))


def decode(value: str | None) -> list[str]:
    """Parse a column value into an ordered list of URIs."""
    return list(parse_photo_set(value).uris)


def parse_photo_set(value: str | None) -> EmptyPhotoSet | SinglePhoto | ManyPhotos:
    if not value:
        return EmptyPhotoSet()

    if not value.startswith("["):
        return SinglePhoto(uri=value)

    try:
        parsed = json.loads(value)
    except ValueError as exc:
        logger.debug("Photo reference is not valid JSON, using it as one URI: %s", exc)
        return SinglePhoto(uri=value)

    if not isinstance(parsed, list) or not all(isinstance(u, str) for u in parsed):
        logger.debug("Photo reference is not a JSON array of strings, using it as one URI")
        return SinglePhoto(uri=value)

    return photo_set_from_uris(parsed)


def serialize_photo_set(photo_set: EmptyPhotoSet | SinglePhoto | ManyPhotos) -> str | None:
    if isinstance(photo_set, EmptyPhotoSet):
        return None
    if isinstance(photo_set, SinglePhoto):
        return photo_set.uri
    return json.dumps(list(photo_set.photos), separators=_JSON_SEPARATORS, ensure_ascii=False)


def count(value: str | None) -> int:
    return len(decode(value))


def first(value: str | None) -> str | None:
    uris = decode(value)
    return uris[0] if uris else None


def add_photos(value: str | None, *new_uris: str) -> str | None:
    """Append ``new_uris`` after the existing photos, keeping upload order."""
    return encode(decode(value) + list(new_uris))


def remove_photo(value: str | None, uri_to_remove: str) -> str | None:
    """Drop the first occurrence of ``uri_to_remove``; no-op when absent."""
    uris = decode(value)
    if uri_to_remove in uris:
        uris.remove(uri_to_remove)
    return encode(uris)
