import os
from abc import ABC, abstractmethod
from typing import Optional

import requests
from pydantic import BaseModel, Field

from versevision.specs.common.errors import ServiceError
from versevision.shared.logging_utils import info as log_info

SHARE_TITLE = "VerseVision Creation"


def share_caption(poem: str) -> str:
    return f"A poem inspired by my photo:\n\n{poem}"


class SharePayload(BaseModel):
    title: str = SHARE_TITLE
    text: str
    filename: str
    mimeType: str = "image/png"
    data: bytes = Field(..., repr=False)


class ShareTarget(ABC):
    """A platform capability that accepts a finished creation.

    Implementations that can tell a user dismissal apart from a failure raise
    ``ShareCancelled`` for the former; everything else should raise a
    VerseVisionError.
    """

    def can_share(self, payload: SharePayload) -> bool:
        return True

    @abstractmethod
    def share(self, payload: SharePayload) -> None:
        """Hand ``payload`` to the platform."""


class WebhookShareTarget(ShareTarget):
    """Posts the share payload as multipart form data to a webhook.

    A webhook has no notion of a user dismissing a share sheet, so this
    target never raises ShareCancelled.
    """

    def __init__(self, url: str, *, timeout: float = 30.0) -> None:
        self.url = url
        self.timeout = timeout

    def can_share(self, payload: SharePayload) -> bool:
        return payload.mimeType.startswith("image/")

    def share(self, payload: SharePayload) -> None:
        files = {"file": (payload.filename, payload.data, payload.mimeType)}
        form = {"title": payload.title, "text": payload.text}
        try:
            resp = requests.post(self.url, data=form, files=files, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ServiceError(f"Share webhook failed: {exc}", details={"url": self.url}) from exc
        log_info(None, "share:webhook:sent", status=resp.status_code, bytes=len(payload.data))


def get_share_target() -> Optional[ShareTarget]:
    """Share target configured by VERSEVISION_SHARE_WEBHOOK_URL, if any."""
    url = os.getenv("VERSEVISION_SHARE_WEBHOOK_URL")
    if not url:
        return None
    return WebhookShareTarget(url)
