import importlib.util
from pathlib import Path

import pytest

from versevision.specs.models import SCHEMA_MODELS

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "generate_specs.py"


@pytest.fixture(scope="module")
def generate_specs():
    spec = importlib.util.spec_from_file_location("generate_specs", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.parametrize("filename", sorted(SCHEMA_MODELS))
def test_every_registered_model_has_a_schema(filename):
    schema = SCHEMA_MODELS[filename].model_json_schema()
    assert schema["type"] == "object"
    assert schema["properties"]


def test_openapi_references_known_components(generate_specs):
    doc = generate_specs.build_openapi()
    components = doc["components"]["schemas"]
    assert "/poem_sessions/{session_id}/share" in doc["paths"]
    for path_item in doc["paths"].values():
        for op in path_item.values():
            for resp in op["responses"].values():
                for media in resp.get("content", {}).values():
                    ref = media["schema"].get("$ref")
                    if ref:
                        assert ref.rsplit("/", 1)[-1] in components


def test_schemas_are_written_as_json_and_yaml(generate_specs, tmp_path, monkeypatch):
    monkeypatch.setattr(generate_specs, "SCHEMAS_DIR", tmp_path)
    generate_specs.generate_model_schemas()
    assert (tmp_path / "poem_session.view.schema.json").exists()
    assert (tmp_path / "poem_session.view.schema.yaml").exists()
