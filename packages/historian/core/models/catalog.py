"""Catalog of preset entities."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CatalogEntry(BaseModel):
    """Preset entity eligible for background pregeneration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    location: str
    image_url: str | None = Field(default=None, description="Display-only thumbnail")


_UNSPLASH = "https://images.unsplash.com/{photo}?auto=format&fit=crop&q=80&w=800"

DEFAULT_CATALOG: tuple[CatalogEntry, ...] = (
    CatalogEntry(
        id="eiffel",
        name="Eiffel Tower",
        location="Paris, France",
        image_url=_UNSPLASH.format(photo="photo-1511739001486-6bfe10ce785f"),
    ),
    CatalogEntry(
        id="sagrada",
        name="Sagrada Família",
        location="Barcelona, Spain",
        image_url=_UNSPLASH.format(photo="photo-1583779457094-0ddcf20a55e4"),
    ),
    CatalogEntry(
        id="colosseum",
        name="Colosseum",
        location="Rome, Italy",
        image_url=_UNSPLASH.format(photo="photo-1552832230-c0197dd311b5"),
    ),
    CatalogEntry(
        id="stpauls",
        name="St Paul's Cathedral",
        location="London, UK",
        image_url=_UNSPLASH.format(photo="photo-1549893072-4bc678117f45"),
    ),
    CatalogEntry(
        id="tajmahal",
        name="Taj Mahal",
        location="Agra, India",
        image_url=_UNSPLASH.format(photo="photo-1548013146-72479768bbaa"),
    ),
    CatalogEntry(
        id="greatwall",
        name="Great Wall of China",
        location="Huairou, China",
        image_url=_UNSPLASH.format(photo="photo-1508804185872-d7badad00f7d"),
    ),
)
