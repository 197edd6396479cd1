from typing import Dict, Optional

import azure.functions as func
from pydantic import BaseModel

from versevision.specs.common.error_response_spec import ErrorResponse
from versevision.specs.common.errors import VerseVisionError

_STATUS_BY_CODE: Dict[str, int] = {
    "INVALID_INPUT": 400,
    "RESOURCE_NOT_FOUND": 404,
    "SESSION_BUSY": 409,
    "COMPOSITE_FAILED": 422,
    "CONFIGURATION_ERROR": 500,
    "SHARE_UNSUPPORTED": 501,
    "EMPTY_RESULT": 502,
    "SERVICE_ERROR": 502,
}


def json_response(model: BaseModel, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        body=model.model_dump_json(),
        mimetype="application/json",
        status_code=status_code,
    )


def error_response(
    message: str,
    status_code: int = 400,
    *,
    error_code: Optional[str] = None,
    details: Optional[Dict] = None,
) -> func.HttpResponse:
    err = ErrorResponse(message=message, errorCode=error_code, details=details)
    return json_response(err, status_code)


def error_from_exception(exc: VerseVisionError, *, message: Optional[str] = None) -> func.HttpResponse:
    err = ErrorResponse.from_error(exc)
    if message:
        err.message = message
    return json_response(err, _STATUS_BY_CODE.get(exc.code, 500))


def png_response(data: bytes, filename: str) -> func.HttpResponse:
    return func.HttpResponse(
        body=data,
        mimetype="image/png",
        status_code=200,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
