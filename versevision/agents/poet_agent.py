import json
import os
from typing import Any, Dict, List, Optional

import requests
from azure.identity import DefaultAzureCredential

from versevision.specs.agents.poem import (
    ImprovePoemInput,
    ImprovePoemOutput,
    PoemFromImageInput,
    PoemFromImageOutput,
)
from versevision.specs.agents.poet_agent_instructions import GENERATE_INSTRUCTIONS, IMPROVE_INSTRUCTIONS
from versevision.specs.common.errors import ConfigurationError, EmptyResultError, ServiceError
from versevision.specs.common.image import ImageReference
from versevision.shared.data_uri import decode_data_uri, encode_data_uri
from versevision.shared.logging_utils import info as log_info, warning as log_warning
from .base import PoemGenerator

_COGNITIVE_SCOPE = "https://cognitiveservices.azure.com/.default"


class AzureOpenAIPoetAgent(PoemGenerator):
    """Poet agent backed by an Azure OpenAI chat deployment.

    Sends one chat-completions request per call with a fixed system
    instruction and a JSON response format. Authenticates with the
    ``api-key`` header when AZURE_OPENAI_KEY is set, otherwise with an Entra
    ID token from DefaultAzureCredential. No retries, no client timeout.
    """

    def __init__(
        self,
        *,
        endpoint: Optional[str] = None,
        deployment: Optional[str] = None,
        api_version: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = 0.8,
    ) -> None:
        super().__init__()
        self.endpoint = (endpoint or os.getenv("AZURE_OPENAI_ENDPOINT") or "").rstrip("/")
        if not self.endpoint:
            raise ConfigurationError("AZURE_OPENAI_ENDPOINT is required for the poet agent")
        self.deployment = deployment or os.getenv("AZURE_OPENAI_CHAT_DEPLOYMENT_NAME")
        if not self.deployment:
            raise ConfigurationError("AZURE_OPENAI_CHAT_DEPLOYMENT_NAME is required for the poet agent")
        self.api_version = api_version or os.getenv("AZURE_OPENAI_API_VERSION", "2024-06-01")
        self._api_key = api_key or os.getenv("AZURE_OPENAI_KEY")
        self.temperature = temperature
        self._credential: Optional[DefaultAzureCredential] = None
        if not self._api_key:
            disable_mi = os.getenv("AZURE_IDENTITY_DISABLE_MANAGED_IDENTITY", "").lower() in ("1", "true", "yes")
            self._credential = DefaultAzureCredential(exclude_managed_identity_credential=disable_mi)

    @property
    def url(self) -> str:
        return (
            f"{self.endpoint}/openai/deployments/{self.deployment}/chat/completions"
            f"?api-version={self.api_version}"
        )

    def _auth_headers(self) -> Dict[str, str]:
        if self._api_key:
            return {"api-key": self._api_key}
        try:
            token = self._credential.get_token(_COGNITIVE_SCOPE)
        except Exception as exc:
            raise ServiceError("Could not acquire an Azure OpenAI token", details={"error": str(exc)}) from exc
        return {"Authorization": f"Bearer {token.token}"}

    def _complete(self, messages: List[Dict[str, Any]], *, operation: str) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", **self._auth_headers()}
        body = {
            "messages": messages,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }
        log_info(self._session_id, f"poet:{operation}:start", deployment=self.deployment)
        try:
            resp = requests.post(self.url, headers=headers, json=body, timeout=None)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            status = getattr(getattr(exc, "response", None), "status_code", None)
            raise ServiceError(
                f"Azure OpenAI request failed: {exc}",
                details={"operation": operation, "status": status},
            ) from exc
        except ValueError as exc:
            raise ServiceError("Azure OpenAI returned a non-JSON body", details={"operation": operation}) from exc

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ServiceError("Azure OpenAI response had no message content", details={"operation": operation}) from exc
        if not isinstance(content, str):
            raise ServiceError("Azure OpenAI message content was not text", details={"operation": operation})
        return self._parse_json_content(content, operation=operation)

    @staticmethod
    def _parse_json_content(content: str, *, operation: str) -> Dict[str, Any]:
        text = content.strip()
        if text.startswith("```"):
            text = text.strip("`")
            if text.lower().startswith("json"):
                text = text[4:]
        try:
            obj = json.loads(text)
        except ValueError as exc:
            raise ServiceError("Poem payload was not valid JSON", details={"operation": operation}) from exc
        if not isinstance(obj, dict):
            raise ServiceError("Poem payload was not a JSON object", details={"operation": operation})
        return obj

    def _extract_field(self, obj: Dict[str, Any], field: str, *, operation: str) -> str:
        if field not in obj:
            raise ServiceError(f"Poem payload is missing '{field}'", details={"operation": operation})
        value = obj.get(field)
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ServiceError(f"Poem payload field '{field}' is not text", details={"operation": operation})
        if not value.strip():
            log_warning(self._session_id, f"poet:{operation}:empty")
            raise EmptyResultError("The generated poem was empty.", details={"operation": operation})
        log_info(self._session_id, f"poet:{operation}:done", lines=len(value.splitlines()))
        return value.strip()

    def generate(self, image: ImageReference) -> str:
        messages = [
            {"role": "system", "content": GENERATE_INSTRUCTIONS},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Image:"},
                    {"type": "image_url", "image_url": {"url": encode_data_uri(image)}},
                ],
            },
        ]
        obj = self._complete(messages, operation="generate")
        return self._extract_field(obj, "poem", operation="generate")

    def refine(self, poem: str, feedback: str) -> str:
        messages = [
            {"role": "system", "content": IMPROVE_INSTRUCTIONS},
            {
                "role": "user",
                "content": (
                    f"Here is the initial poem:\n{poem}\n\n"
                    f"Here is the user's feedback:\n{feedback}"
                ),
            },
        ]
        obj = self._complete(messages, operation="improve")
        return self._extract_field(obj, "improvedPoem", operation="improve")


def generate_poem_from_image(ipt: PoemFromImageInput, generator: PoemGenerator) -> PoemFromImageOutput:
    image = decode_data_uri(ipt.photoDataUri)
    poem = generator.with_session(ipt.sessionId).generate(image)
    return PoemFromImageOutput(poem=poem)


def improve_poem(ipt: ImprovePoemInput, generator: PoemGenerator) -> ImprovePoemOutput:
    improved = generator.with_session(ipt.sessionId).refine(ipt.initialPoem, ipt.feedback)
    return ImprovePoemOutput(improvedPoem=improved)
