"""Decodes a job's raw ``result_data`` into a NormalizedResult.

Accepted shapes, tried in order:

1. a mapping that already carries ``kind``;
2. a JSON string encoding shape 1;
3. a webhook envelope ``{<job_id>: {"status": ..., "result_data": ...}}``
   whose ``result_data`` may itself be a JSON string.
"""

import json
from collections.abc import Mapping
from typing import Any

from widget_factory.jobs.exceptions import InvalidResultFormatError
from widget_factory.jobs.models import NormalizedResult

DEFAULT_KIND = "success"
DEFAULT_HEADLINE = "Processing Complete!"

_PAYLOAD_FIELDS = ("headline", "text", "downloadUrl", "downloadUrls")


def decode_result(raw: Any, job_id: str | None = None) -> NormalizedResult:
    """Decode any accepted raw shape.

    Raises:
        InvalidResultFormatError: if no shape resolves to a result payload.
    """
    payload = extract_payload(raw, job_id)
    return build_result(payload)


def extract_payload(raw: Any, job_id: str | None = None) -> dict[str, Any]:
    """Unwrap the raw value down to the result mapping."""
    if _is_result_payload(raw):
        return dict(raw)

    parsed = _parse_json(raw) if isinstance(raw, str) else raw
    if _is_result_payload(parsed):
        return dict(parsed)

    if isinstance(parsed, Mapping):
        envelope = _unwrap_envelope(parsed, job_id)
        if envelope is not None:
            return envelope

    raise InvalidResultFormatError()


def build_result(payload: Mapping[str, Any]) -> NormalizedResult:
    """Build a NormalizedResult, filling display defaults."""
    metadata = payload.get("metadata")
    return NormalizedResult(
        kind=_optional_str(payload.get("kind")) or DEFAULT_KIND,
        headline=_optional_str(payload.get("headline")) or DEFAULT_HEADLINE,
        text=_optional_str(payload.get("text")) or "",
        download_url=_optional_str(payload.get("downloadUrl")),
        download_urls=_optional_str_list(payload.get("downloadUrls")),
        file_name=_optional_str(payload.get("fileName")),
        file_names=_optional_str_list(payload.get("fileNames")),
        metadata=dict(metadata) if isinstance(metadata, Mapping) else None,
    )


def _is_result_payload(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    if value.get("kind"):
        return True
    return any(value.get(name) for name in _PAYLOAD_FIELDS)


def _unwrap_envelope(
    envelope: Mapping[str, Any], job_id: str | None
) -> dict[str, Any] | None:
    if job_id is not None and job_id in envelope:
        entry = envelope[job_id]
    elif envelope:
        entry = next(iter(envelope.values()))
    else:
        return None
    if not isinstance(entry, Mapping) or not entry.get("result_data"):
        return None

    inner = entry["result_data"]
    if isinstance(inner, str):
        inner = _parse_json(inner)
    if _is_result_payload(inner):
        return dict(inner)
    return None


def _parse_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidResultFormatError() from exc


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _optional_str_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [str(item) for item in value]
