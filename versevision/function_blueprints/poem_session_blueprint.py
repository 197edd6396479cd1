import azure.functions as func
from pydantic import ValidationError

from versevision.function_blueprints.agent_factory import get_poem_generator
from versevision.http import poem_workflow
from versevision.specs.common.enums import EditAction, ExportAction
from versevision.specs.common.errors import (
    ConfigurationError,
    InvalidInputError,
    SessionBusyError,
    SessionNotFoundError,
)
from versevision.specs.http.poem_session import CreatePoemSessionRequest, EditPoemRequest
from versevision.shared.data_uri import decode_base64, split_data_uri
from versevision.shared.http_responses import (
    error_from_exception,
    error_response,
    json_response,
    png_response,
)
from versevision.shared.logging_utils import error as log_error, info as log_info
from versevision.shared.session import SessionStore
from versevision.shared.share_target import get_share_target


bp = func.Blueprint()


@bp.function_name(name="create_poem_session")
@bp.route(route="poem_sessions", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
def create_poem_session(req: func.HttpRequest) -> func.HttpResponse:
    try:
        data = req.get_json()
    except ValueError:
        return error_response("Invalid JSON body")
    try:
        parsed = CreatePoemSessionRequest(**data)
    except (TypeError, ValidationError) as ex:
        return error_response(f"Invalid request: {str(ex)}")

    if parsed.photoDataUri:
        try:
            content_type, payload = split_data_uri(parsed.photoDataUri)
        except InvalidInputError as ex:
            return error_response(f"Invalid request: {str(ex)}", error_code=ex.code)
    else:
        content_type, payload = parsed.contentType, parsed.dataBase64 or ""

    try:
        generator = get_poem_generator()
    except ConfigurationError as exc:
        log_error(None, "http:poem_sessions:unconfigured", error=str(exc))
        return error_from_exception(exc)
    session = SessionStore.create()
    accepted = poem_workflow.select_image(
        session,
        content_type=content_type,
        data=lambda: decode_base64(payload),
        generator=generator,
        filename=parsed.filename,
    )
    if not accepted:
        SessionStore.discard(session.sessionId)
        return error_response("Please upload an image file.", error_code="INVALID_INPUT")
    return json_response(session.to_view(), status_code=201)


@bp.function_name(name="get_poem_session")
@bp.route(route="poem_sessions/{session_id}", methods=["GET"], auth_level=func.AuthLevel.FUNCTION)
def get_poem_session(req: func.HttpRequest) -> func.HttpResponse:
    session_id = req.route_params.get("session_id", "")
    try:
        session = SessionStore.get(session_id)
    except SessionNotFoundError as exc:
        return error_from_exception(exc)
    return json_response(session.to_view())


def _edit_not_started(session_id: str) -> func.HttpResponse:
    return error_response(
        "No edit in progress", status_code=409, error_code="EDIT_NOT_STARTED", details={"sessionId": session_id}
    )


@bp.function_name(name="edit_poem_session")
@bp.route(route="poem_sessions/{session_id}/edit", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
def edit_poem_session(req: func.HttpRequest) -> func.HttpResponse:
    session_id = req.route_params.get("session_id", "")
    try:
        session = SessionStore.get(session_id)
    except SessionNotFoundError as exc:
        return error_from_exception(exc)
    try:
        parsed = EditPoemRequest(**req.get_json())
    except (TypeError, ValueError) as ex:
        return error_response(f"Invalid request: {str(ex)}")

    if parsed.action is EditAction.START:
        poem_workflow.start_edit(session)
    elif parsed.action is EditAction.UPDATE:
        if parsed.draft is None:
            return error_response("draft is required for update")
        if not poem_workflow.update_draft(session, parsed.draft):
            return _edit_not_started(session_id)
    elif parsed.action is EditAction.SAVE:
        if not session.isEditing:
            return _edit_not_started(session_id)
        if parsed.draft is not None:
            poem_workflow.update_draft(session, parsed.draft)
        poem_workflow.save_edit(session)
    else:
        poem_workflow.cancel_edit(session)
    log_info(session_id, "http:edit", action=parsed.action.value, isEditing=session.isEditing)
    return json_response(session.to_view())


@bp.function_name(name="download_poem_image")
@bp.route(route="poem_sessions/{session_id}/download", methods=["GET"], auth_level=func.AuthLevel.FUNCTION)
def download_poem_image(req: func.HttpRequest) -> func.HttpResponse:
    session_id = req.route_params.get("session_id", "")
    try:
        session = SessionStore.get(session_id)
        result = poem_workflow.export(session, ExportAction.DOWNLOAD)
    except (SessionNotFoundError, SessionBusyError) as exc:
        return error_from_exception(exc)

    if result.outcome == "downloaded" and result.data is not None:
        return png_response(result.data, result.filename or "")
    if result.outcome == "skipped":
        return error_response("Nothing to download yet", status_code=409)
    notes = session.drain_notifications()
    message = notes[-1].description if notes else "Could not download your creation."
    return error_response(message, status_code=422, error_code="COMPOSITE_FAILED")


@bp.function_name(name="share_poem_image")
@bp.route(route="poem_sessions/{session_id}/share", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
def share_poem_image(req: func.HttpRequest) -> func.HttpResponse:
    session_id = req.route_params.get("session_id", "")
    try:
        session = SessionStore.get(session_id)
        result = poem_workflow.export(session, ExportAction.SHARE, share_target=get_share_target())
    except (SessionNotFoundError, SessionBusyError) as exc:
        return error_from_exception(exc)

    if result.outcome == "shared":
        return json_response(session.to_view())
    if result.outcome == "cancelled":
        return func.HttpResponse(status_code=204)
    if result.outcome == "skipped":
        return error_response("Nothing to share yet", status_code=409)
    notes = session.drain_notifications()
    message = notes[-1].description if notes else "Could not share your creation."
    if result.outcome == "unsupported":
        return error_response(message, status_code=501, error_code="SHARE_UNSUPPORTED")
    return error_response(message, status_code=502)


@bp.function_name(name="delete_poem_session")
@bp.route(route="poem_sessions/{session_id}", methods=["DELETE"], auth_level=func.AuthLevel.FUNCTION)
def delete_poem_session(req: func.HttpRequest) -> func.HttpResponse:
    session_id = req.route_params.get("session_id", "")
    try:
        session = SessionStore.get(session_id)
    except SessionNotFoundError as exc:
        return error_from_exception(exc)
    if session.is_busy():
        return error_from_exception(SessionBusyError(session_id, "delete"))
    SessionStore.discard(session_id)
    return func.HttpResponse(status_code=204)
