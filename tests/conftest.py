import base64
import io
import json
from typing import Any, Dict, List, Optional

import azure.functions as func
import pytest
import requests
from PIL import Image

from versevision.agents.base import PoemGenerator
from versevision.function_blueprints.agent_factory import set_poem_generator
from versevision.specs.common.errors import EmptyResultError, ServiceError
from versevision.specs.common.image import ImageReference
from versevision.shared.session import SessionStore


def make_png(width: int = 120, height: int = 80, color=(200, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def make_data_uri(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def make_response(status: int = 200, payload: Optional[Any] = None, raw: Optional[bytes] = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = raw if raw is not None else json.dumps(payload).encode("utf-8")
    resp.url = "https://example.openai.azure.com/openai/deployments/poet/chat/completions"
    return resp


def chat_response(content: str) -> requests.Response:
    return make_response(payload={"choices": [{"message": {"role": "assistant", "content": content}}]})


class FakePoemGenerator(PoemGenerator):
    """Records calls and returns a scripted poem or raises a scripted error."""

    def __init__(self, poem: str = "Line one\nLine two", error: Optional[Exception] = None) -> None:
        super().__init__()
        self.poem = poem
        self.error = error
        self.generate_calls: List[ImageReference] = []
        self.refine_calls: List[Dict[str, str]] = []

    def generate(self, image: ImageReference) -> str:
        self.generate_calls.append(image)
        if self.error is not None:
            raise self.error
        return self.poem

    def refine(self, poem: str, feedback: str) -> str:
        self.refine_calls.append({"poem": poem, "feedback": feedback})
        if self.error is not None:
            raise self.error
        return f"{poem}\n({feedback})"


_BUILT: Dict[int, Any] = {}


def user_fn(builder):
    """Unwrap an azure.functions blueprint registration into the plain handler."""
    key = id(builder)
    if key not in _BUILT:
        _BUILT[key] = builder.build().get_user_function()
    return _BUILT[key]


def http_request(
    method: str,
    url: str,
    body: Optional[Any] = None,
    route_params: Optional[Dict[str, str]] = None,
    raw: Optional[bytes] = None,
) -> func.HttpRequest:
    data = raw if raw is not None else (json.dumps(body).encode("utf-8") if body is not None else b"")
    return func.HttpRequest(
        method=method,
        url=url,
        body=data,
        headers={"Content-Type": "application/json"},
        route_params=route_params or {},
    )


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def image_ref(png_bytes) -> ImageReference:
    return ImageReference(mimeType="image/png", data=png_bytes, filename="photo.png")


@pytest.fixture
def fake_generator() -> FakePoemGenerator:
    return FakePoemGenerator()


@pytest.fixture
def empty_generator() -> FakePoemGenerator:
    return FakePoemGenerator(error=EmptyResultError("The generated poem was empty."))


@pytest.fixture
def failing_generator() -> FakePoemGenerator:
    return FakePoemGenerator(error=ServiceError("boom"))


@pytest.fixture(autouse=True)
def _reset_state(monkeypatch):
    for var in (
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_CHAT_DEPLOYMENT_NAME",
        "AZURE_OPENAI_KEY",
        "VERSEVISION_SHARE_WEBHOOK_URL",
        "VERSEVISION_FONT_DIR",
    ):
        monkeypatch.delenv(var, raising=False)
    SessionStore.clear()
    set_poem_generator(None)
    yield
    SessionStore.clear()
    set_poem_generator(None)
