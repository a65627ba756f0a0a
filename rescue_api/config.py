# SPDX-License-Identifier: Apache-2.0

"""
Application configuration read from environment variables.
"""

import os
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = 'dev-secret-key'


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


def _origins() -> List[str]:
    origins = []
    frontend_url = os.getenv('FRONTEND_URL')
    if frontend_url:
        origins.append(frontend_url)
    custom_origins = os.getenv('CORS_ORIGINS')
    if custom_origins:
        origins.extend(origin.strip() for origin in custom_origins.split(',') if origin.strip())
    return origins


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the Flask config mapping from the environment.

    Args:
        overrides: Values that take precedence over the environment

    Returns:
        Config dictionary for ``app.config.update``
    """
    environment = os.getenv('ENVIRONMENT', 'development')

    config = {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'DOCS_ENABLED': _flag('DOCS_ENABLED', 'true'),

        # Database configuration
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/rescue_coordination_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'rescue_coordination_dev'),
        'MONGODB_TRANSACTIONS': _flag('MONGODB_TRANSACTIONS', 'false'),

        # Security configuration
        'JWT_SECRET': os.getenv('JWT_SECRET', DEFAULT_JWT_SECRET),
        'JWT_EXPIRES_MINUTES': int(os.getenv('JWT_EXPIRES_MINUTES', str(7 * 24 * 60))),

        # API configuration
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'CORS_ORIGINS': _origins(),
        'PORT': int(os.getenv('PORT', '5000')),

        # Observability
        'OTEL_ENABLED': _flag('OTEL_ENABLED', 'false'),
        'SERVICE_VERSION': os.getenv('SERVICE_VERSION', '1.0.0'),
    }

    config.update(overrides or {})

    if config['JWT_SECRET'] == DEFAULT_JWT_SECRET and config['ENVIRONMENT'] not in ('development', 'test'):
        logger.warning(
            "JWT_SECRET is not set; using the development default",
            extra={"environment": config['ENVIRONMENT']}
        )

    return config
