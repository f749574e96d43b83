"""Serialization of tracking records and legacy-format detection."""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from .models import (
    DEFAULT_SOURCES_SUBDIRECTORY,
    FILE_FORMAT_VERSION,
    LegacyTrackingRecord,
    TopLevelConfig,
    TrackingRecord,
    TrackingRecordBase,
)

FORMAT_VERSION_MARKER = '"fileFormatVersion"'

# Legacy writers emitted unescaped backslashes and occasionally '=' separators.
_LEGACY_PAIR = re.compile(r'"(?P<key>[A-Za-z_]+)"\s*[:=]\s*"(?P<value>[^"\r\n]*)"')
_LEGACY_PARENT = re.compile(r"^(?P<parent>.*[^\\/])[\\/]+[^\\/]+$")
_LEGACY_KEYS = {
    "system": "system",
    "collectionId": "collection_id",
    "definitionId": "definition_id",
    "repositoryUrl": "repository_url",
    "hashKey": "hash_key",
}

logger = logging.getLogger(__name__)


class TrackingDecodeError(ValueError):
    """Raised when tracking content is syntactically invalid."""


def _as_text(content: bytes | str) -> str:
    if isinstance(content, str):
        return content
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise TrackingDecodeError(f"Tracking content is not valid UTF-8: {exc}") from exc


def encode(record: TrackingRecordBase | TopLevelConfig) -> bytes:
    """Serialize a record to UTF-8 JSON bytes."""

    if isinstance(record, LegacyTrackingRecord):
        return (json.dumps(_legacy_payload(record), indent=2) + "\n").encode("utf-8")
    if isinstance(record, TrackingRecord) and record.file_format_version != FILE_FORMAT_VERSION:
        record = record.model_copy(update={"file_format_version": FILE_FORMAT_VERSION})
    return (record.model_dump_json(by_alias=True, indent=2) + "\n").encode("utf-8")


def decode(content: bytes | str) -> TrackingRecordBase | None:
    """Decode a tracking file, falling back to the legacy shape.

    Returns ``None`` when the content carries no format marker and cannot be
    read as a legacy record either.
    """

    text = _as_text(content)
    if FORMAT_VERSION_MARKER in text:
        logger.debug("Parsing current tracking record format")
        try:
            return TrackingRecord.model_validate_json(text)
        except ValidationError as exc:
            raise TrackingDecodeError(f"Invalid tracking record: {exc}") from exc

    logger.debug("Parsing legacy tracking record format")
    return parse_legacy(text)


def parse_legacy(text: str) -> LegacyTrackingRecord | None:
    values = _legacy_values(text)
    source_folder = values.get("sourceFolder") or values.get("build_sourcesdirectory")
    if not source_folder:
        return None

    match = _LEGACY_PARENT.match(source_folder.strip().rstrip("\\/"))
    if match is None:
        return None

    extras = {field: values[key] for key, field in _LEGACY_KEYS.items() if key in values}
    return LegacyTrackingRecord(build_directory=match.group("parent"), **extras)


def _legacy_values(text: str) -> dict[str, str]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        document = None

    if isinstance(document, dict):
        return {
            str(key): str(value)
            for key, value in document.items()
            if isinstance(value, (str, int)) and not isinstance(value, bool)
        }
    return {match.group("key"): match.group("value") for match in _LEGACY_PAIR.finditer(text)}


def _legacy_payload(record: LegacyTrackingRecord) -> dict[str, str]:
    separator = "\\" if "\\" in record.build_directory else "/"
    payload = {key: getattr(record, field) for key, field in _LEGACY_KEYS.items()}
    payload["sourceFolder"] = (
        record.build_directory.rstrip("\\/") + separator + DEFAULT_SOURCES_SUBDIRECTORY
    )
    return payload


def decode_top_level(content: bytes | str) -> TopLevelConfig:
    """Decode the singleton counter file; any malformed content is an error."""

    text = _as_text(content)
    try:
        return TopLevelConfig.model_validate_json(text)
    except ValidationError as exc:
        raise TrackingDecodeError(f"Invalid top-level tracking file: {exc}") from exc


__all__ = [
    "FORMAT_VERSION_MARKER",
    "TrackingDecodeError",
    "decode",
    "decode_top_level",
    "encode",
    "parse_legacy",
]
