#!/usr/bin/env python3
"""
Seed demo data: an admin, a coordinator and a few rescue teams.
Prints bearer tokens for the seeded users.

Run with ``python -m rescue_api.scripts.seed_demo_data``.
"""

from ..domain.errors import DuplicateError
from ..domain.rescue_teams import RescueTeamService
from ..models.entities import Identity
from ..models.enums import UserRole, TeamSpecialization
from ..services.auth import AuthService
from ..services.identity import UserDirectory
from ..services.mongodb import MongoDBService

DEMO_USERS = [
    ("admin@rescue.example", "Demo Admin", UserRole.ADMIN),
    ("coordinator@rescue.example", "Demo Coordinator", UserRole.COORDINATOR),
    ("citizen@rescue.example", "Demo Citizen", UserRole.CITIZEN),
]

DEMO_TEAMS = [
    {
        "name": "Hue Flood Response 1",
        "leader_name": "Nguyen Van An",
        "phone_number": "0905000001",
        "province_city": "Hue",
        "specialization": TeamSpecialization.GENERAL.value,
        "capacity": 8,
        "current_members": 6,
        "equipment": ["boat", "life jackets"]
    },
    {
        "name": "Da Nang Medical Unit",
        "leader_name": "Tran Thi Binh",
        "phone_number": "0905000002",
        "province_city": "Da Nang",
        "specialization": TeamSpecialization.MEDICAL.value,
        "capacity": 5,
        "current_members": 5,
        "equipment": ["first aid kits", "stretchers"]
    },
    {
        "name": "Quang Nam Vehicle Team",
        "leader_name": "Le Van Cuong",
        "phone_number": "0905000003",
        "province_city": "Quang Nam",
        "capacity": 10,
        "current_members": 7,
        "specialization": TeamSpecialization.VEHICLE.value
    },
]


def seed_demo_data():
    """Create demo users and teams; existing records are left untouched."""
    print("Seeding demo data...")

    mongo_svc = MongoDBService()
    auth_svc = AuthService()
    directory = UserDirectory(mongo_svc)
    teams = RescueTeamService(mongo_svc)

    try:
        print("Creating users...")
        tokens = {}
        for email, name, role in DEMO_USERS:
            user = directory.find_by_email(email) or directory.create_user(email, role=role, name=name)
            tokens[email] = auth_svc.issue_token(Identity.from_user(user))

        print("Creating rescue teams...")
        for team_data in DEMO_TEAMS:
            try:
                team = teams.create_team(team_data)
                print(f"  created {team.name} ({team.id})")
            except DuplicateError:
                print(f"  {team_data['name']} already exists, skipping")

        print("\nBearer tokens:")
        for email, token in tokens.items():
            print(f"  {email}: {token}")
    finally:
        mongo_svc.close_connection()


if __name__ == "__main__":
    seed_demo_data()
