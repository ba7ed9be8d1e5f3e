from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RawCardRow:
    """One print as displayed in a series listing, before normalization."""

    display_code: str
    name: str
    species: str
    card_type: str
    image_src: str
    cost: int
    power: int
    counter: int
    color: str
    feature: str
    effect_text: str
    acquisition_text: str
    series_id: str
    row_id: int | None = None


@dataclass
class CanonicalCard:
    cid: int
    display_code: str
    name: str
    card_type: str
    cost: int
    power: int
    counter: int
    color: str
    feature: str
    effect_text: str


@dataclass
class Variant:
    cid: int
    image_src: str
    species: str
    acquisition_text: str
    series_id: str
    is_alternate_art: bool


@dataclass
class FileRecord:
    cid: int
    path: str


@dataclass
class WorkItem:
    """One image to download, in worklist order."""

    cid: int
    image_src: str
    series_name: str


@dataclass
class NormalizeSummary:
    raw_rows: int
    cards: int
    variants: int
    alternate_art: int
