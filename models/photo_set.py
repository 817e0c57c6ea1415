"""Tagged representation of a finding's photo list.

The stored form is a single scalar string (see ``utils.photo_refs``); inside
the compiler a PhotoSet is always one of three explicit variants so that no
code path has to sniff strings to find out how many photos there are.
"""
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class EmptyPhotoSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["empty"] = "empty"

    @property
    def uris(self) -> tuple[str, ...]:
        return ()


class SinglePhoto(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    uri: str = Field(min_length=1)

    @property
    def uris(self) -> tuple[str, ...]:
        return (self.uri,)


class ManyPhotos(BaseModel):
    """Two or more photos in upload order. Duplicates are allowed."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["many"] = "many"
    photos: tuple[str, ...] = Field(min_length=2)

    @property
    def uris(self) -> tuple[str, ...]:
        return self.photos


PhotoSet = Annotated[
    Union[EmptyPhotoSet, SinglePhoto, ManyPhotos],
    Field(discriminator="kind"),
]


def photo_set_from_uris(uris) -> EmptyPhotoSet | SinglePhoto | ManyPhotos:
    """Build the matching variant for an ordered sequence of URIs.

    Empty strings are not photo references and are dropped, so a list that
    holds nothing else becomes an EmptyPhotoSet.
    """
    uris = tuple(uri for uri in uris if uri)
    if not uris:
        return EmptyPhotoSet()
    if len(uris) == 1:
        return SinglePhoto(uri=uris[0])
    return ManyPhotos(photos=uris)
