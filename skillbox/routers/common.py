"""Request parsing and error responses shared by the routers."""

import json
import logging
from typing import Type, TypeVar, Union

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def validation_error_response(error: ValidationError) -> JSONResponse:
    """422 with one entry per invalid field."""
    errors = []
    for item in error.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in item["loc"]),
            "message": item["msg"],
            "type": item["type"],
        })
    logger.warning(f"Validation error: {errors}")
    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation Error",
            "message": "Request validation failed",
            "details": errors,
        },
    )


def unauthorized_response() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"error": "Authentication required", "code": "UNAUTHORIZED"},
    )


def server_error_response(error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": error, "details": str(exc)})


async def parse_body(request: Request, model: Type[ModelT]) -> Union[ModelT, JSONResponse]:
    """Parse and validate a JSON body, or build the matching 400/422 response."""
    try:
        body = await request.json()
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in request body: {e}")
        return JSONResponse(
            status_code=400,
            content={
                "error": "Bad Request",
                "message": "Invalid JSON in request body",
                "details": str(e),
            },
        )

    try:
        return model.model_validate(body)
    except ValidationError as e:
        return validation_error_response(e)
