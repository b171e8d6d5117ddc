import logging

from extensions import db
from models import Intake, User
from services.auth_service import DEFAULT_ADMIN_ID, create_default_admin
from services.course_service import add_intake
from services.settings_service import get_settings

logger = logging.getLogger(__name__)

DEFAULT_INTAKES = [
    {"name": "January Intake", "academic_year": "2024/2025", "description": "", "status": "active"},
    {"name": "September Intake", "academic_year": "2024/2025", "description": "", "status": "active"},
]


def seed_settings():
    get_settings()
    logger.info("System settings verified")


def seed_admin(reset=False):
    if reset or db.session.get(User, DEFAULT_ADMIN_ID) is None:
        create_default_admin()
    else:
        logger.info("Default admin already present")


def seed_intakes():
    for i in DEFAULT_INTAKES:
        existing = Intake.query.filter_by(name=i["name"], academic_year=i["academic_year"]).first()
        if not existing:
            add_intake(i)
    logger.info("Intakes seeded")


def run_seed(reset_admin=False):
    seed_settings()
    seed_admin(reset=reset_admin)
    seed_intakes()
