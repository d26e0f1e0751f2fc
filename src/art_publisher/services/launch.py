"""Validation of launch parameters into an upload input."""

import json
from collections.abc import Mapping

from pydantic import ValidationError

from art_publisher.domain.uploads import UploadInput
from art_publisher.errors import InputMalformedError, InputMissingError

_LAUNCH_KEYS = ("images", "description", "params")


def parse_image_urls(raw: str | None) -> list[str]:
    """Split the comma-separated images parameter, dropping blank entries."""
    if not raw:
        return []
    return [url.strip() for url in raw.split(",") if url.strip()]


def parse_launch_params(query: Mapping[str, str]) -> UploadInput:
    """Validate raw launch parameters.

    Raises InputMissingError when nothing was supplied and
    InputMalformedError when parameters are present but incomplete
    or unparseable.
    """
    supplied = {
        key: query[key] for key in _LAUNCH_KEYS if query.get(key, "").strip()
    }
    if not supplied:
        raise InputMissingError("No launch parameters supplied")

    missing = [key for key in _LAUNCH_KEYS if key not in supplied]
    if missing:
        raise InputMalformedError(f"Missing launch parameters: {', '.join(missing)}")

    try:
        parameters = json.loads(supplied["params"])
    except json.JSONDecodeError as exc:
        raise InputMalformedError(f"params is not valid JSON: {exc.msg}") from exc
    if not isinstance(parameters, dict):
        raise InputMalformedError("params must be a JSON object")

    try:
        return UploadInput(
            image_urls=tuple(parse_image_urls(supplied["images"])),
            description=supplied["description"],
            parameters=parameters,
        )
    except ValidationError as exc:
        fields = sorted({str(error["loc"][0]) for error in exc.errors()})
        raise InputMalformedError(f"Invalid launch parameters: {fields}") from exc
