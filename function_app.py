import os
import logging
import azure.functions as func

from versevision.function_blueprints.poem_blueprint import bp as poem_bp
from versevision.function_blueprints.poem_session_blueprint import bp as poem_session_bp
from versevision.function_blueprints.compose_image_blueprint import bp as compose_image_bp
from versevision.shared.logging_utils import LOGGER_NAME

app = func.FunctionApp(http_auth_level=func.AuthLevel.FUNCTION)


def _configure_logging() -> None:
    lvl = (os.getenv("AZURE_SDK_LOG_LEVEL") or "").upper()
    if lvl:
        level = getattr(logging, lvl, logging.INFO)
        logging.getLogger("azure").setLevel(level)
        logging.getLogger("azure.identity").setLevel(level)
    app_lvl = (os.getenv("VERSEVISION_LOG_LEVEL") or "INFO").upper()
    logging.getLogger(LOGGER_NAME).setLevel(getattr(logging, app_lvl, logging.INFO))


_configure_logging()

app.register_functions(poem_bp)
app.register_functions(poem_session_bp)
app.register_functions(compose_image_bp)
