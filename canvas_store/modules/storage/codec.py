"""JSON codec for canvas records."""

import json

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from canvas_store.shared.exceptions import CorruptRecordError
from .models import CURRENT_SCHEMA_VERSION, Document


class DocumentCodec:
    """Serializes documents to and from the on-disk record format.

    ``decode(encode(d)) == d`` holds for every valid document. Unknown keys are
    dropped and missing optional keys take their model defaults.
    """

    def encode(self, document: Document) -> bytes:
        return document.model_dump_json(by_alias=True).encode("utf-8")

    def decode(self, data: bytes) -> Document:
        try:
            payload = json.loads(data)
        except (UnicodeDecodeError, ValueError) as e:
            raise CorruptRecordError(f"Record is not valid JSON: {e}")

        if not isinstance(payload, dict):
            raise CorruptRecordError(
                "Record is not a JSON object",
                details={"found": type(payload).__name__},
            )

        version = payload.get("schemaVersion", CURRENT_SCHEMA_VERSION)
        if isinstance(version, int) and version > CURRENT_SCHEMA_VERSION:
            logger.warning(
                f"Record {payload.get('id')} has schema version {version}, "
                f"newer than {CURRENT_SCHEMA_VERSION}; unknown fields are ignored"
            )

        try:
            return Document.model_validate(payload)
        except PydanticValidationError as e:
            raise CorruptRecordError(
                f"Record does not match the document schema: {e.error_count()} error(s)",
                details={"errors": e.errors(include_url=False)},
            )
