# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation helpers built on Pydantic models.
"""

from typing import Any, Dict, List, Type, TypeVar
from flask import request
from pydantic import BaseModel, ValidationError
from opentelemetry import trace
import logging

from .error_handler import ValidationException
from ..utils.request import RequestParser

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_validation_errors(validation_error: ValidationError) -> List[Dict[str, Any]]:
    """
    Format Pydantic validation errors for API response.

    Args:
        validation_error: Pydantic ValidationError

    Returns:
        List of ``{field, message}`` dictionaries
    """
    errors = []

    for error in validation_error.errors():
        field_path = ".".join(str(loc) for loc in error["loc"]) or "body"
        errors.append({
            "field": field_path,
            "message": error["msg"],
            "type": error["type"]
        })

    return errors


def parse_model(model_class: Type[ModelT], data: Dict[str, Any], source: str = "body") -> ModelT:
    """
    Validate ``data`` against ``model_class``.

    Raises:
        ValidationException: With field-level detail when validation fails
    """
    with tracer.start_as_current_span("validation.parse_model") as span:
        span.set_attributes({
            "validation.model": model_class.__name__,
            "validation.source": source
        })
        try:
            return model_class(**data)
        except ValidationError as e:
            errors = format_validation_errors(e)
            span.set_attribute("validation.error_count", len(errors))
            logger.info(
                "Request validation failed",
                extra={
                    "model": model_class.__name__,
                    "source": source,
                    "errors": errors,
                    "path": request.path if request else None
                }
            )
            raise ValidationException(f"Invalid request {source}", errors)


def validate_body(model_class: Type[ModelT]) -> ModelT:
    """Validate the JSON body of the current request."""
    try:
        data = RequestParser.get_json_body()
    except TypeError as e:
        raise ValidationException("Invalid request body", [{"field": "body", "message": str(e)}])
    return parse_model(model_class, data, "body")


def validate_query(model_class: Type[ModelT]) -> ModelT:
    """Validate the query string of the current request."""
    return parse_model(model_class, request.args.to_dict(), "query")
