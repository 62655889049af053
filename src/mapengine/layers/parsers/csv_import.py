"""Parse comma-separated point data into a FeatureCollection.

Expects a header row naming a latitude column (lat, latitude) and a longitude
column (lon, lng, long, longitude), matched case-insensitively. An optional
weight-like column (weight, value, intensity, count, pm25) feeds the heatmap.
Every header-keyed field is kept verbatim as a string attribute.

Known limitation: fields are split naively on commas, so quoted values that
contain commas are not supported.
"""

from __future__ import annotations

import math
import re

from mapengine.layers.layer import FeatureCollection, PointFeature

LAT_NAMES = ("lat", "latitude")
LNG_NAMES = ("lon", "lng", "long", "longitude")
WEIGHT_NAMES = ("weight", "value", "intensity", "count", "pm25")

DEFAULT_WEIGHT = 1.0

_BOM = "\ufeff"
_LINE_SPLIT = re.compile(r"\r?\n|\r")
_NUMBER_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class MissingColumnError(ValueError):
    """Raised when the header row lacks a latitude or longitude column.

    Attributes:
        expected: Column-name alternatives that could not be found.
    """

    def __init__(self, expected: list[str]) -> None:
        self.expected = list(expected)
        super().__init__(
            "CSV must have headers for latitude and longitude "
            f'(e.g. "lat" and "lon"); expected one of: {", ".join(self.expected)}'
        )


def parse_csv(csv_string: str) -> FeatureCollection:
    """Parse CSV text with lat/lon columns into point features.

    Args:
        csv_string: Raw CSV content with a header row.

    Returns:
        FeatureCollection in input row order. Rows whose latitude or
        longitude is not a finite number are dropped. Fewer than two
        non-empty lines yields an empty collection.

    Raises:
        MissingColumnError: If no latitude or longitude header is present.
    """
    lines = [line.strip() for line in _LINE_SPLIT.split(csv_string or "")]
    lines = [line for line in lines if line]
    if len(lines) < 2:
        return FeatureCollection()

    headers = [h.strip() for h in lines[0].split(",")]
    if headers and headers[0].startswith(_BOM):
        headers[0] = headers[0][len(_BOM):]

    idx_lat = _find_column(headers, LAT_NAMES)
    idx_lng = _find_column(headers, LNG_NAMES)
    idx_weight = _find_column(headers, WEIGHT_NAMES)

    missing: list[str] = []
    if idx_lat is None:
        missing.extend(LAT_NAMES)
    if idx_lng is None:
        missing.extend(LNG_NAMES)
    if missing:
        raise MissingColumnError(missing)

    features: list[PointFeature] = []
    for line in lines[1:]:
        cols = [c.strip() for c in line.split(",")]
        lat = _parse_finite(_field(cols, idx_lat))
        lng = _parse_finite(_field(cols, idx_lng))
        if lat is None or lng is None:
            continue

        weight = DEFAULT_WEIGHT
        if idx_weight is not None:
            parsed = _parse_finite(_field(cols, idx_weight))
            if parsed is not None:
                weight = parsed

        attributes: dict = {}
        for j, header in enumerate(headers):
            attributes[header] = _field(cols, j)
        attributes["weight"] = weight

        features.append(
            PointFeature(coordinates=(lng, lat), weight=weight, attributes=attributes)
        )

    return FeatureCollection(features=features)


def _find_column(headers: list[str], names: tuple[str, ...]) -> int | None:
    """Index of the first header matching any of ``names`` (case-insensitive)."""
    for idx, header in enumerate(headers):
        if header.lower() in names:
            return idx
    return None


def _field(cols: list[str], idx: int) -> str:
    """Column value, or "" when the row is shorter than the header."""
    return cols[idx] if idx < len(cols) else ""


def _parse_finite(raw: str) -> float | None:
    """Parse the leading number of a field, as "34.0abc" -> 34.0.

    Returns None when no numeric prefix exists or the value is not finite.
    """
    match = _NUMBER_PREFIX.match(raw or "")
    if match is None:
        return None
    value = float(match.group(0))
    if not math.isfinite(value):
        return None
    return value
