# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and processing request data.
"""

from flask import request
from typing import Dict, Any, Iterable, Type, TypeVar
from pydantic import BaseModel, ValidationError as PydanticValidationError
import logging

from ..domain.errors import ValidationError, from_pydantic
from ..domain.transitions import DEFAULT_PAGE, DEFAULT_LIMIT, normalize_pagination

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)


class RequestParser:
    """Utility for parsing and extracting request data."""

    @staticmethod
    def get_pagination_params() -> Dict[str, int]:
        """
        Extract pagination parameters from the query string.

        Non-numeric values fall back to the defaults; ``page`` is at least 1
        and ``limit`` is clamped to ``[1, 100]``.

        Returns:
            Dictionary with page and limit
        """
        page, limit, _ = normalize_pagination(
            request.args.get('page', DEFAULT_PAGE),
            request.args.get('limit', DEFAULT_LIMIT)
        )
        return {'page': page, 'limit': limit}

    @staticmethod
    def get_filter_params(allowed_filters: Iterable[str]) -> Dict[str, str]:
        """
        Extract whitelisted, non-empty filter parameters from the query string.
        """
        filters = {}
        for key in allowed_filters:
            value = request.args.get(key, '').strip()
            if value:
                filters[key] = value
        return filters

    @staticmethod
    def parse_json_body() -> Dict[str, Any]:
        """
        Parse the JSON request body. An empty body is treated as ``{}``.

        Raises:
            ValidationError: body is not a JSON object
        """
        data = request.get_json(silent=True)
        if data is None:
            if request.get_data():
                raise ValidationError(
                    "Invalid JSON body",
                    [{"field": "body", "message": "Request body must be valid JSON", "input": None}]
                )
            return {}
        if not isinstance(data, dict):
            raise ValidationError(
                "Invalid JSON body",
                [{"field": "body", "message": "Request body must be a JSON object", "input": None}]
            )
        return data

    @classmethod
    def parse_model(cls, model: Type[M]) -> M:
        """
        Parse the JSON body into a request model.

        Raises:
            ValidationError: body is not JSON or fails model validation
        """
        try:
            return model.model_validate(cls.parse_json_body())
        except PydanticValidationError as e:
            logger.debug(f"Request body rejected by {model.__name__}")
            raise from_pydantic(e, "Invalid request body")
