"""Stream a JSON value while the model is still writing it.

Each accumulated text snapshot is repaired and parsed, so consumers see a
sequence of valid, progressively more complete values instead of broken
JSON text. The final value may optionally be validated against a pydantic
model.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from modelstream.errors import StructureParseError, StructureValidationError
from modelstream.partial_json import parse_partial_json
from modelstream.partial_json.repair import strict_loads
from modelstream.schemas.settings import FunctionOptions
from modelstream.schemas.streaming import StructureStreamPart
from modelstream.streaming.stream_text import stream_text

if TYPE_CHECKING:
    from modelstream.providers.base import TextStreamingModel

logger = logging.getLogger(__name__)

_MISSING = object()


def _parse_final(text: str) -> Any:
    try:
        return strict_loads(text)
    except (ValueError, RecursionError):
        pass

    value = parse_partial_json(text)
    if value is None:
        raise StructureParseError(text)
    logger.debug("Final structure needed repair (%d chars)", len(text))
    return value


async def stream_structure(
    model: TextStreamingModel[Any, Any],
    prompt: Any,
    options: FunctionOptions | None = None,
    *,
    schema: type[BaseModel] | None = None,
) -> AsyncIterator[StructureStreamPart]:
    """Yield best-effort partial values parsed from the model's JSON output.

    A part is yielded whenever the repaired value changes. Once the text
    stream ends a last part with ``is_complete=True`` carries the final
    value, validated with ``schema`` when one is given.

    Lifecycle events, abort and failure behave exactly as in
    :func:`~modelstream.streaming.stream_text.stream_text`.

    Raises:
        StructureParseError: The finished text holds no JSON value.
        StructureValidationError: The final value does not match ``schema``.
    """
    accumulated = ""
    last_value: Any = _MISSING

    async with aclosing(stream_text(model, prompt, options)) as fragments:
        async for fragment in fragments:
            accumulated += fragment
            value = parse_partial_json(accumulated)
            if value is None or value == last_value:
                continue
            last_value = value
            yield StructureStreamPart(value=value)

    final_value = _parse_final(accumulated)
    if schema is not None:
        try:
            final_value = schema.model_validate(final_value)
        except ValidationError as e:
            raise StructureValidationError(final_value, e) from e

    yield StructureStreamPart(value=final_value, is_complete=True)
