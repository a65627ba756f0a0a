# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

Persistence runs against mongomock through the real MongoDBService, so each
test gets a fresh in-memory database.
"""

import os
import pytest
import mongomock

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['MONGODB_DATABASE'] = 'rescue_coordination_test'

from rescue_api.app import create_app
from rescue_api.domain.rescue_requests import RescueRequestService
from rescue_api.domain.rescue_teams import RescueTeamService
from rescue_api.models.entities import Identity
from rescue_api.models.enums import UserRole
from rescue_api.services.auth import AuthService
from rescue_api.services.identity import UserDirectory
from rescue_api.services.mongodb import MongoDBService

TEST_JWT_SECRET = 'test-secret-key'


@pytest.fixture(scope="session")
def test_database_name():
    """Test database name."""
    return 'rescue_coordination_test'


@pytest.fixture(scope="function")
def mongodb_client():
    """In-memory MongoDB client."""
    client = mongomock.MongoClient()
    yield client
    client.close()


@pytest.fixture(scope="function")
def mongodb_service(mongodb_client, test_database_name):
    """MongoDB service over the in-memory client, with compensating units of work."""
    return MongoDBService(
        database_name=test_database_name,
        client=mongodb_client,
        transactions_enabled=False
    )


@pytest.fixture
def user_directory(mongodb_service):
    """Identity gateway backed by the users collection."""
    return UserDirectory(mongodb_service)


@pytest.fixture
def admin_user(user_directory):
    """Stored admin user."""
    return user_directory.create_user("admin@example.com", role=UserRole.ADMIN, name="Admin")


@pytest.fixture
def coordinator_user(user_directory):
    """Stored coordinator user."""
    return user_directory.create_user("coordinator@example.com", role=UserRole.COORDINATOR, name="Coordinator")


@pytest.fixture
def citizen_user(user_directory):
    """Stored citizen user."""
    return user_directory.create_user("citizen@example.com", role=UserRole.CITIZEN, name="Citizen")


@pytest.fixture
def team_service(mongodb_service):
    """Team availability manager."""
    return RescueTeamService(mongodb_service)


@pytest.fixture
def request_service(mongodb_service, user_directory, team_service):
    """Rescue request lifecycle engine."""
    return RescueRequestService(mongodb_service, user_directory, team_service)


@pytest.fixture
def sample_request_data():
    """GPS rescue request submission."""
    return {
        "category": "rescue",
        "province_city": "Hue",
        "phone_number": "0905123456",
        "description": "Family of four trapped on the roof, water still rising",
        "location_type": "gps",
        "latitude": 16.4637,
        "longitude": 107.5909,
        "num_people": 4
    }


@pytest.fixture
def sample_manual_request_data():
    """Manually located rescue request submission."""
    return {
        "category": "supplies",
        "province_city": "Da Nang",
        "phone_number": "0905654321",
        "description": "Need drinking water and food for elderly residents",
        "location_type": "manual",
        "address": "12 Tran Phu, Hai Chau"
    }


@pytest.fixture
def sample_team_data():
    """Rescue team data."""
    return {
        "name": "Hue Flood Response 1",
        "leader_name": "Nguyen Van An",
        "phone_number": "0905000001",
        "province_city": "Hue",
        "specialization": "general",
        "capacity": 8,
        "current_members": 6,
        "equipment": ["boat", "life jackets"]
    }


@pytest.fixture
def app(mongodb_service, user_directory):
    """Flask application wired to the in-memory database."""
    application = create_app(
        config={
            'ENVIRONMENT': 'test',
            'OTEL_ENABLED': False,
            'JWT_SECRET': TEST_JWT_SECRET,
            'BASE_URL': 'http://testserver',
            'CORS_ORIGINS': ['https://dashboard.example.com']
        },
        mongodb_service=mongodb_service,
        identity_gateway=user_directory
    )
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def auth_service():
    """Auth service sharing the test app's secret."""
    return AuthService(secret=TEST_JWT_SECRET, expires_minutes=60)


@pytest.fixture
def auth_headers(auth_service):
    """Build bearer headers for a stored user."""
    def _headers(user):
        token = auth_service.issue_token(Identity.from_user(user))
        return {"Authorization": f"Bearer {token}"}
    return _headers
