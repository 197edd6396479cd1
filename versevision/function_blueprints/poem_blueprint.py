import azure.functions as func
from pydantic import ValidationError

from versevision.agents.poet_agent import generate_poem_from_image, improve_poem as improve_poem_text
from versevision.function_blueprints.agent_factory import get_poem_generator
from versevision.specs.agents.poem import ImprovePoemInput, PoemFromImageInput
from versevision.specs.common.errors import VerseVisionError
from versevision.shared.http_responses import error_from_exception, error_response, json_response
from versevision.shared.logging_utils import error as log_error, info as log_info


bp = func.Blueprint()

GENERATE_FAILED_MESSAGE = "Could not generate a poem. Please try another image."
IMPROVE_FAILED_MESSAGE = "Could not improve the poem."


@bp.function_name(name="generate_poem")
@bp.route(route="generate_poem", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
def generate_poem(req: func.HttpRequest) -> func.HttpResponse:
    try:
        data = req.get_json()
    except ValueError:
        return error_response("Invalid JSON body")
    try:
        parsed = PoemFromImageInput(**data)
    except (TypeError, ValidationError) as ex:
        return error_response(f"Invalid request: {str(ex)}")

    log_info(parsed.sessionId, "http:generate_poem:request")
    try:
        out = generate_poem_from_image(parsed, get_poem_generator())
    except VerseVisionError as exc:
        log_error(parsed.sessionId, "http:generate_poem:failed", code=exc.code, error=str(exc))
        if exc.code in ("EMPTY_RESULT", "SERVICE_ERROR"):
            return error_from_exception(exc, message=GENERATE_FAILED_MESSAGE)
        return error_from_exception(exc)
    return json_response(out)


@bp.function_name(name="improve_poem")
@bp.route(route="improve_poem", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
def improve_poem(req: func.HttpRequest) -> func.HttpResponse:
    try:
        data = req.get_json()
    except ValueError:
        return error_response("Invalid JSON body")
    try:
        parsed = ImprovePoemInput(**data)
    except (TypeError, ValidationError) as ex:
        return error_response(f"Invalid request: {str(ex)}")

    log_info(parsed.sessionId, "http:improve_poem:request", feedbackLen=len(parsed.feedback))
    try:
        out = improve_poem_text(parsed, get_poem_generator())
    except VerseVisionError as exc:
        log_error(parsed.sessionId, "http:improve_poem:failed", code=exc.code, error=str(exc))
        if exc.code in ("EMPTY_RESULT", "SERVICE_ERROR"):
            return error_from_exception(exc, message=IMPROVE_FAILED_MESSAGE)
        return error_from_exception(exc)
    return json_response(out)
