"""
Handlers for one poem session: pick a photo, generate, edit, export.

Each handler mutates the PoemSession it is given. Generation and export
failures become notifications on the session and the busy flags are always
cleared on the way out. Only SessionBusyError reaches the caller.
"""
from typing import Callable, Optional, Union

from versevision.agents.base import PoemGenerator
from versevision.media.poem_compositor import compose_poem_image
from versevision.specs.common.enums import ExportAction
from versevision.specs.common.errors import (
    EmptyResultError,
    InvalidInputError,
    SessionBusyError,
    ShareCancelled,
    ShareUnsupportedError,
    VerseVisionError,
)
from versevision.specs.functions.compose_image_spec import (
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_FONT,
    DEFAULT_TEXT_COLOR,
    OUTPUT_FILENAME,
)
from versevision.specs.http.poem_session import ExportResult
from versevision.shared.data_uri import image_reference_from_upload, is_image_type
from versevision.shared.logging_utils import error as log_error, info as log_info
from versevision.shared.session import PoemSession
from versevision.shared.share_target import SharePayload, ShareTarget, share_caption

UploadData = Union[bytes, Callable[[], bytes]]


def select_image(
    session: PoemSession,
    *,
    content_type: Optional[str],
    data: UploadData,
    generator: PoemGenerator,
    filename: Optional[str] = None,
) -> bool:
    """Accept an uploaded photo and generate a poem for it.

    ``data`` may be a callable so the payload is only read once the type has
    been accepted. Returns False when the upload is rejected.
    """
    if not is_image_type(content_type):
        log_info(session.sessionId, "session:image:rejected", contentType=content_type, filename=filename)
        session.notify("Invalid File", "Please upload an image file.")
        return False
    try:
        raw = data() if callable(data) else data
        session.image = image_reference_from_upload(content_type=content_type, data=raw, filename=filename)
    except InvalidInputError:
        session.notify("Invalid File", "Please upload an image file.")
        return False
    session.touch()
    log_info(session.sessionId, "session:image:selected", contentType=session.image.mimeType, bytes=session.image.size)
    generate_poem(session, generator)
    return True


def generate_poem(session: PoemSession, generator: PoemGenerator) -> Optional[str]:
    if session.image is None:
        return None
    if session.isGenerating:
        raise SessionBusyError(session.sessionId, "generate")
    session.isGenerating = True
    session.poem = ""
    try:
        poem = generator.with_session(session.sessionId).generate(session.image)
        if not poem:
            raise EmptyResultError("The generated poem was empty.")
        session.poem = poem
        session.editedPoem = poem
        log_info(session.sessionId, "session:generate:done", lines=len(poem.splitlines()))
        return poem
    except VerseVisionError as exc:
        log_error(session.sessionId, "session:generate:failed", code=exc.code, error=str(exc))
        session.notify("Error", "Could not generate a poem. Please try another image.")
        return None
    finally:
        session.isGenerating = False
        session.touch()


def start_edit(session: PoemSession) -> None:
    if not session.poem:
        return
    session.editedPoem = session.poem
    session.isEditing = True
    session.touch()


def update_draft(session: PoemSession, draft: str) -> bool:
    """Replace the working draft. Ignored unless an edit is open."""
    if not session.isEditing:
        log_info(session.sessionId, "session:edit:ignored", action="update")
        return False
    session.editedPoem = draft
    session.touch()
    return True


def save_edit(session: PoemSession) -> bool:
    if not session.isEditing:
        log_info(session.sessionId, "session:edit:ignored", action="save")
        return False
    session.poem = session.editedPoem
    session.isEditing = False
    session.touch()
    return True


def cancel_edit(session: PoemSession) -> None:
    session.editedPoem = session.poem
    session.isEditing = False
    session.touch()


def export(
    session: PoemSession,
    action: ExportAction,
    *,
    share_target: Optional[ShareTarget] = None,
    font: str = DEFAULT_FONT,
    text_color: str = DEFAULT_TEXT_COLOR,
    background_color: str = DEFAULT_BACKGROUND_COLOR,
) -> ExportResult:
    """Composite the committed poem and download or share it.

    The composite is rendered from scratch on every call.
    """
    action = ExportAction(action)
    if session.image is None or not session.poem:
        return ExportResult(action=action, outcome="skipped")
    if session.isProcessing:
        raise SessionBusyError(session.sessionId, action.value)

    session.isProcessing = True
    try:
        png = compose_poem_image(session.image, session.poem, font, text_color, background_color)
        if action is ExportAction.DOWNLOAD:
            log_info(session.sessionId, "session:download:ready", bytes=len(png))
            return ExportResult(
                action=action,
                outcome="downloaded",
                filename=OUTPUT_FILENAME,
                mimeType="image/png",
                data=png,
            )

        payload = SharePayload(text=share_caption(session.poem), filename=OUTPUT_FILENAME, data=png)
        if share_target is None or not share_target.can_share(payload):
            raise ShareUnsupportedError("No share target can accept files")
        try:
            share_target.share(payload)
        except ShareCancelled:
            log_info(session.sessionId, "session:share:cancelled")
            return ExportResult(action=action, outcome="cancelled")
        log_info(session.sessionId, "session:share:done")
        return ExportResult(action=action, outcome="shared", filename=OUTPUT_FILENAME, mimeType="image/png")
    except ShareUnsupportedError as exc:
        log_error(session.sessionId, "session:share:unsupported", code=exc.code)
        session.notify("Sharing not supported", "Sharing files is not supported here.")
        return ExportResult(action=action, outcome="unsupported")
    except VerseVisionError as exc:
        log_error(session.sessionId, f"session:{action.value}:failed", code=exc.code, error=str(exc))
        session.notify("Error", f"Could not {action.value} your creation.")
        return ExportResult(action=action, outcome="failed")
    finally:
        session.isProcessing = False
        session.touch()
