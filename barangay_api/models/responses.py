# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response envelope models for API endpoints.
"""

from typing import Any, List, Optional
from pydantic import BaseModel, Field


class FieldError(BaseModel):
    """Field-level validation detail."""

    field: str = Field(..., description="Dotted path of the offending field")
    message: str = Field(..., description="What is wrong with it")


class ApiResponse(BaseModel):
    """Envelope wrapping every API response."""

    success: bool = Field(..., description="Whether the request succeeded")
    data: Optional[Any] = Field(None, description="Response payload")
    message: Optional[str] = Field(None, description="Human-readable message")
    errors: List[FieldError] = Field(default_factory=list, description="Validation errors")


class ErrorResponse(ApiResponse):
    """Envelope for failed requests."""

    success: bool = Field(default=False)
    code: str = Field(..., description="Machine-readable error code")


class QueueResponse(ApiResponse):
    """Approval queue envelope with unfiltered statistics."""

    statistics: dict = Field(default_factory=dict, description="Pending counts per kind")
