# optcg/services/parser.py
"""
Raw field bundles -> typed records.

Card blocks are validated against CARD_FIELDS, an ordered extraction
schema. Each field declares its shape and the value used when the page
does not provide one, so missing data never needs ad hoc handling at the
call site.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from optcg.constants import ALT_ART_RE
from optcg.models import RawCardRow

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")
_LEADING_INT_RE = re.compile(r"\d+")


@dataclass(frozen=True)
class FieldSpec:
    name: str
    shape: str  # text | url | int | label | html
    default: Any


CARD_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("display_code", "text", ""),
    FieldSpec("species", "text", ""),
    FieldSpec("card_type", "text", ""),
    FieldSpec("image_src", "url", ""),
    FieldSpec("name", "text", ""),
    FieldSpec("cost", "int", 0),
    FieldSpec("power", "int", 0),
    FieldSpec("counter", "int", 0),
    FieldSpec("color", "label", "-"),
    FieldSpec("feature", "label", "-"),
    FieldSpec("effect_text", "html", "-"),
    FieldSpec("acquisition_text", "html", "-"),
)


def normalize_series_name(label: str) -> str:
    text = html_lib.unescape(label or "")
    text = unicodedata.normalize("NFKC", text)
    return _WS_RE.sub(" ", text).strip()


def parse_series_options(pairs: Iterable[tuple[str, str]]) -> dict[str, str]:
    """
    (label, value) pairs from the series selector -> {series_id: name}.

    Options with an empty value (the "all series" placeholder) are dropped.
    Page order is kept; a repeated id keeps its first position and the
    last label seen.
    """
    out: dict[str, str] = {}
    for label, value in pairs:
        series_id = (value or "").strip()
        if not series_id:
            continue
        out[series_id] = normalize_series_name(label)
    return out


def parse_int(raw: Any) -> int | None:
    # leading base-10 digits, e.g. "5000" -> 5000, "2 " -> 2, "-" -> None
    if raw is None:
        return None
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    m = _LEADING_INT_RE.match(str(raw).strip())
    if not m:
        return None
    return int(m.group(0))


def strip_query(url: str) -> str:
    return (url or "").split("?", 1)[0].strip()


def clean_free_text(fragment: str | None) -> str:
    """Drop <h3> headings, turn <br> into spaces and trim.

    The rest of the fragment is re-serialized by BeautifulSoup: entities
    such as ``&nbsp;`` come back as characters, ``&``/``<``/``>`` stay
    escaped and attribute values are double-quoted.
    """
    if not fragment:
        return ""
    soup = BeautifulSoup(fragment, "html.parser")
    for heading in soup.find_all("h3"):
        heading.decompose()
    for br in soup.find_all("br"):
        br.replace_with(" ")
    return soup.decode_contents().strip()


def _coerce(spec: FieldSpec, raw: Any) -> Any:
    # None means "use the default"
    if spec.shape == "int":
        return parse_int(raw)
    if raw is None:
        return None
    if spec.shape == "url":
        value = strip_query(str(raw))
    elif spec.shape == "html":
        value = clean_free_text(str(raw))
    else:
        value = str(raw).strip()
    return value or None


def parse_card_bundle(bundle: Mapping[str, Any], series_id: str) -> RawCardRow:
    values: dict[str, Any] = {}
    defaulted: list[str] = []
    for spec in CARD_FIELDS:
        value = _coerce(spec, bundle.get(spec.name))
        if value is None:
            value = spec.default
            defaulted.append(spec.name)
        values[spec.name] = value

    if defaulted:
        logger.debug("%s: defaulted fields %s", values["display_code"] or "?", ", ".join(defaulted))

    return RawCardRow(series_id=series_id, **values)


def parse_card_bundles(bundles: Iterable[Any], series_id: str) -> list[RawCardRow]:
    rows: list[RawCardRow] = []
    for idx, bundle in enumerate(bundles, 1):
        if not isinstance(bundle, Mapping):
            logger.warning("[SKIP] series=%s block=%d is not a field bundle", series_id, idx)
            continue
        row = parse_card_bundle(bundle, series_id)
        if not row.display_code:
            logger.warning("[SKIP] series=%s block=%d has no display code", series_id, idx)
            continue
        rows.append(row)
    return rows


def image_file_name(image_src: str) -> str:
    path = urlparse(strip_query(image_src)).path
    return path.rsplit("/", 1)[-1]


def is_alternate_art(image_src: str) -> bool:
    """True when the artwork file is named ``<stem>_p<digits>.<ext>``."""
    name = image_file_name(image_src or "")
    return bool(name) and ALT_ART_RE.match(name) is not None
