#!/usr/bin/env python3
"""
Generate JSON Schemas, YAML variants, and OpenAPI from Pydantic models.

Outputs under versevision/specs/:
 - schemas/*.json (and *.yaml)
 - openapi.yaml and openapi.json
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

try:
    import yaml  # type: ignore
except Exception as exc:  # pragma: no cover
    print("PyYAML is required: pip install pyyaml", file=sys.stderr)
    raise


ROOT = Path(__file__).resolve().parents[1]
PKG = ROOT / "versevision"
SPECS = PKG / "specs"
SCHEMAS_DIR = SPECS / "schemas"

sys.path.insert(0, str(ROOT))

from versevision.specs.models import SCHEMA_MODELS  # noqa: E402

# (path, method, operationId, summary, request schema, {status: (description, schema or media type)})
Route = Tuple[str, str, str, str, Optional[str], Dict[str, Tuple[str, str]]]

ROUTES: List[Route] = [
    ("/generate_poem", "post", "generatePoem", "Generate a poem from a photo data URI",
     "PoemFromImageInput", {"200": ("Poem generated", "PoemFromImageOutput"),
                            "502": ("Generative service failed or returned nothing", "ErrorResponse")}),
    ("/improve_poem", "post", "improvePoem", "Rewrite a poem from user feedback",
     "ImprovePoemInput", {"200": ("Improved poem", "ImprovePoemOutput"),
                          "502": ("Generative service failed or returned nothing", "ErrorResponse")}),
    ("/compose_image", "post", "composeImage", "Composite a poem onto a photo",
     "ComposePoemImageRequest", {"200": ("PNG attachment verse-vision.png", "image/png"),
                                 "422": ("Image could not be decoded or drawn", "ErrorResponse")}),
    ("/poem_sessions", "post", "createPoemSession", "Upload a photo and generate its poem",
     "CreatePoemSessionRequest", {"201": ("Session created", "PoemSessionView"),
                                  "400": ("Not an image", "ErrorResponse")}),
    ("/poem_sessions/{session_id}", "get", "getPoemSession", "Read a session",
     None, {"200": ("Session", "PoemSessionView"), "404": ("Unknown session", "ErrorResponse")}),
    ("/poem_sessions/{session_id}", "delete", "deletePoemSession", "Discard a session and its photo",
     None, {"204": ("Session discarded", ""), "404": ("Unknown session", "ErrorResponse"),
            "409": ("Generation or export in flight", "ErrorResponse")}),
    ("/poem_sessions/{session_id}/edit", "post", "editPoemSession", "Start, update, save or cancel an edit",
     "EditPoemRequest", {"200": ("Session", "PoemSessionView"), "404": ("Unknown session", "ErrorResponse"),
                         "409": ("No edit in progress", "ErrorResponse")}),
    ("/poem_sessions/{session_id}/download", "get", "downloadPoemImage", "Download the composited poem",
     None, {"200": ("PNG attachment verse-vision.png", "image/png"),
            "409": ("Nothing to download or render in flight", "ErrorResponse")}),
    ("/poem_sessions/{session_id}/share", "post", "sharePoemImage", "Hand the creation to the share target",
     None, {"200": ("Shared", "PoemSessionView"), "204": ("Share cancelled", ""),
            "501": ("No share target", "ErrorResponse")}),
]


def write_json_yaml(obj: dict, json_path: Path) -> None:
    json_path.parent.mkdir(parents=True, exist_ok=True)
    with json_path.open("w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
    yaml_path = json_path.with_suffix(".yaml")
    with yaml_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(obj, f, sort_keys=False)


def generate_model_schemas() -> None:
    for filename, model in SCHEMA_MODELS.items():
        schema = model.model_json_schema()
        write_json_yaml(schema, SCHEMAS_DIR / filename)


def _content(schema_or_media: str) -> Optional[dict]:
    if not schema_or_media:
        return None
    if "/" in schema_or_media:
        return {schema_or_media: {"schema": {"type": "string", "format": "binary"}}}
    return {"application/json": {"schema": {"$ref": f"#/components/schemas/{schema_or_media}"}}}


def build_openapi() -> dict:
    # Inline the model schemas as OpenAPI components
    components = {"schemas": {model.__name__: model.model_json_schema() for model in SCHEMA_MODELS.values()}}

    paths: Dict[str, dict] = {}
    for path, method, op_id, summary, request_model, responses in ROUTES:
        op: dict = {"summary": summary, "operationId": op_id, "responses": {}}
        if "{session_id}" in path:
            op["parameters"] = [
                {"in": "path", "name": "session_id", "schema": {"type": "string"}, "required": True}
            ]
        if request_model:
            op["requestBody"] = {"required": True, "content": _content(request_model)}
        for status, (description, target) in responses.items():
            resp: dict = {"description": description}
            content = _content(target)
            if content:
                resp["content"] = content
            op["responses"][status] = resp
        paths.setdefault(path, {})[method] = op

    return {
        "openapi": "3.0.3",
        "info": {
            "title": "VerseVision Functions API",
            "version": "0.1.0",
            "description": "HTTP endpoints exposed by the VerseVision Azure Functions app.",
        },
        "servers": [
            {"url": "http://localhost:7071/api", "description": "Local Functions host"}
        ],
        "paths": paths,
        "components": components,
    }


def generate_openapi() -> None:
    spec = build_openapi()
    write_json_yaml(spec, SPECS / "openapi.json")


def main() -> None:
    generate_model_schemas()
    generate_openapi()
    print("Specs generated under versevision/specs/")


if __name__ == "__main__":
    main()
