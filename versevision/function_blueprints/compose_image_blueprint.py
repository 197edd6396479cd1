import azure.functions as func
from pydantic import ValidationError

from versevision.media.poem_compositor import compose_poem_image
from versevision.specs.common.errors import VerseVisionError
from versevision.specs.functions.compose_image_spec import ComposePoemImageRequest, OUTPUT_FILENAME
from versevision.shared.data_uri import decode_data_uri
from versevision.shared.http_responses import error_from_exception, error_response, png_response
from versevision.shared.logging_utils import info as log_info

bp = func.Blueprint()

@bp.function_name(name="compose_image")
@bp.route(route="compose_image", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
def compose_image_handler(req: func.HttpRequest) -> func.HttpResponse:
    log_info(None, "http:compose_image:request")
    try:
        req_body = req.get_json()
    except ValueError:
        return error_response("Invalid JSON body")
    try:
        parsed = ComposePoemImageRequest(**req_body)
    except (TypeError, ValidationError) as ex:
        return error_response(f"Invalid request: {str(ex)}")

    try:
        image = decode_data_uri(parsed.imageDataUri)
        img_bytes = compose_poem_image(
            image,
            parsed.text,
            font=parsed.font,
            text_color=parsed.textColor,
            background_color=parsed.backgroundColor,
        )
    except VerseVisionError as exc:
        return error_from_exception(exc)
    return png_response(img_bytes, OUTPUT_FILENAME)
