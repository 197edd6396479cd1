from __future__ import annotations

from typing import Dict, Type

from pydantic import BaseModel

from versevision.specs.agents.poem import (
    ImprovePoemInput,
    ImprovePoemOutput,
    PoemFromImageInput,
    PoemFromImageOutput,
)
from versevision.specs.common.error_response_spec import ErrorResponse
from versevision.specs.functions.compose_image_spec import ComposePoemImageRequest, CompositeLayout
from versevision.specs.http.poem_session import (
    CreatePoemSessionRequest,
    EditPoemRequest,
    Notification,
    PoemSessionView,
)


# Registry mapping output schema filenames to models for generation
SCHEMA_MODELS: Dict[str, Type[BaseModel]] = {
    "generate_poem.request.schema.json": PoemFromImageInput,
    "generate_poem.response.schema.json": PoemFromImageOutput,
    "improve_poem.request.schema.json": ImprovePoemInput,
    "improve_poem.response.schema.json": ImprovePoemOutput,
    "compose_image.request.schema.json": ComposePoemImageRequest,
    "composite.layout.schema.json": CompositeLayout,
    "poem_session.create.request.schema.json": CreatePoemSessionRequest,
    "poem_session.edit.request.schema.json": EditPoemRequest,
    "poem_session.view.schema.json": PoemSessionView,
    "notification.schema.json": Notification,
    "error.response.schema.json": ErrorResponse,
}

__all__ = [
    "PoemFromImageInput",
    "PoemFromImageOutput",
    "ImprovePoemInput",
    "ImprovePoemOutput",
    "ComposePoemImageRequest",
    "CompositeLayout",
    "CreatePoemSessionRequest",
    "EditPoemRequest",
    "PoemSessionView",
    "Notification",
    "ErrorResponse",
    "SCHEMA_MODELS",
]
