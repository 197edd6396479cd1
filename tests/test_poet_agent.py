import json

import pytest
import requests

from versevision.agents import poet_agent
from versevision.agents.poet_agent import AzureOpenAIPoetAgent, generate_poem_from_image, improve_poem
from versevision.specs.agents.poem import ImprovePoemInput, PoemFromImageInput
from versevision.specs.common.errors import ConfigurationError, EmptyResultError, ServiceError

from conftest import FakePoemGenerator, chat_response, make_data_uri, make_response


@pytest.fixture
def agent(monkeypatch):
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com/")
    monkeypatch.setenv("AZURE_OPENAI_CHAT_DEPLOYMENT_NAME", "poet")
    monkeypatch.setenv("AZURE_OPENAI_KEY", "secret")
    return AzureOpenAIPoetAgent()


class _Recorder(list):
    def __init__(self) -> None:
        super().__init__()
        self.script = {"response": chat_response(json.dumps({"poem": "Luz da tarde\nsobre o mar"}))}

    def post(self, url, headers=None, json=None, timeout=None, **kwargs):
        self.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        resp = self.script["response"]
        if isinstance(resp, Exception):
            raise resp
        return resp


@pytest.fixture
def calls(monkeypatch):
    recorder = _Recorder()
    monkeypatch.setattr(poet_agent.requests, "post", recorder.post)
    return recorder


def test_generate_sends_one_request_with_data_uri(agent, calls, image_ref):
    poem = agent.generate(image_ref)

    assert poem == "Luz da tarde\nsobre o mar"
    assert len(calls) == 1
    call = calls[0]
    assert call["url"] == (
        "https://example.openai.azure.com/openai/deployments/poet/chat/completions?api-version=2024-06-01"
    )
    assert call["headers"]["api-key"] == "secret"
    assert call["timeout"] is None
    body = call["json"]
    assert body["response_format"] == {"type": "json_object"}
    assert "Brazilian Portuguese" in body["messages"][0]["content"]
    image_part = body["messages"][1]["content"][1]
    assert image_part["type"] == "image_url"
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")


@pytest.mark.parametrize("poem", ["", "   \n  ", None])
def test_empty_poem_field_is_empty_result(agent, calls, image_ref, poem):
    calls.script["response"] = chat_response(json.dumps({"poem": poem}))
    with pytest.raises(EmptyResultError) as info:
        agent.generate(image_ref)
    assert info.value.code == "EMPTY_RESULT"
    assert len(calls) == 1


def test_transport_failure_is_service_error_without_retry(agent, calls, image_ref):
    calls.script["response"] = requests.ConnectionError("connection reset")
    with pytest.raises(ServiceError) as info:
        agent.generate(image_ref)
    assert info.value.code == "SERVICE_ERROR"
    assert len(calls) == 1


def test_http_error_status_is_service_error(agent, calls, image_ref):
    calls.script["response"] = make_response(status=500, payload={"error": {"message": "overloaded"}})
    with pytest.raises(ServiceError) as info:
        agent.generate(image_ref)
    assert info.value.details["status"] == 500


@pytest.mark.parametrize(
    "response",
    [
        make_response(raw=b"<html>bad gateway</html>"),
        make_response(payload={"choices": []}),
        chat_response("not json at all"),
        chat_response(json.dumps({"verse": "wrong key"})),
        chat_response(json.dumps({"poem": ["a", "list"]})),
    ],
)
def test_malformed_responses_are_service_errors(agent, calls, image_ref, response):
    calls.script["response"] = response
    with pytest.raises(ServiceError):
        agent.generate(image_ref)


def test_fenced_json_content_is_accepted(agent, calls, image_ref):
    calls.script["response"] = chat_response('```json\n{"poem": "verso"}\n```')
    assert agent.generate(image_ref) == "verso"


def test_refine_uses_improved_poem_field(agent, calls):
    calls.script["response"] = chat_response(json.dumps({"improvedPoem": "Novo verso"}))
    assert agent.refine("Velho verso", "mais alegre") == "Novo verso"
    user_msg = calls[0]["json"]["messages"][1]["content"]
    assert "Velho verso" in user_msg
    assert "mais alegre" in user_msg


def test_refine_empty_is_empty_result(agent, calls):
    calls.script["response"] = chat_response(json.dumps({"improvedPoem": ""}))
    with pytest.raises(EmptyResultError):
        agent.refine("a", "b")


def test_missing_configuration(monkeypatch):
    with pytest.raises(ConfigurationError):
        AzureOpenAIPoetAgent()
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")
    with pytest.raises(ConfigurationError):
        AzureOpenAIPoetAgent()


def test_uses_entra_token_without_api_key(monkeypatch, calls, image_ref):
    class _Token:
        token = "entra-token"

    class _Credential:
        def __init__(self, **kwargs):
            self.kwargs = kwargs

        def get_token(self, scope):
            assert scope == "https://cognitiveservices.azure.com/.default"
            return _Token()

    monkeypatch.setattr(poet_agent, "DefaultAzureCredential", _Credential)
    agent = AzureOpenAIPoetAgent(endpoint="https://example.openai.azure.com", deployment="poet")
    agent.generate(image_ref)
    assert calls[0]["headers"]["Authorization"] == "Bearer entra-token"
    assert "api-key" not in calls[0]["headers"]


def test_flow_helpers_wrap_generator(png_bytes):
    gen = FakePoemGenerator(poem="um\ndois")
    out = generate_poem_from_image(PoemFromImageInput(photoDataUri=make_data_uri(png_bytes)), gen)
    assert out.poem == "um\ndois"
    assert gen.generate_calls[0].data == png_bytes

    improved = improve_poem(ImprovePoemInput(initialPoem="um", feedback="curto"), gen)
    assert improved.improvedPoem == "um\n(curto)"
