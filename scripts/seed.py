#!/usr/bin/env python3
"""
Reference-data seed:
- departments, teams, processes, incident types, a handful of users.
- Safe to run multiple times (idempotent: rows are matched by code / name / email).
"""
import logging
import os
import sys

# enable 'conduct_log.' imports
sys.path.append(os.getcwd())

from sqlalchemy.orm import Session

from conduct_log.core.logging import setup_logging
from conduct_log.db.session import SessionLocal, engine
from conduct_log.models import Base
from conduct_log.models.reference import Department, IncidentType, Process, Team
from conduct_log.models.user import User

log = logging.getLogger("conduct_log.seed")

DEPARTMENTS = [
    ("Trading", "TRD"),
    ("Operations", "OPS"),
    ("Compliance", "CMP"),
    ("Risk Office", "RSK"),
]

TEAMS = {
    "TRD": ["Equities Desk", "Fixed Income Desk"],
    "OPS": ["Settlements", "Client Onboarding"],
    "CMP": ["Surveillance"],
    "RSK": ["Operational Risk"],
}

PROCESSES = [
    ("Trade Capture", "Booking of executed trades"),
    ("Client Onboarding", "KYC and account opening"),
    ("Access Management", "Granting and revoking system access"),
]

INCIDENT_TYPES = [
    ("Harassment", "Inappropriate conduct towards colleagues"),
    ("Policy Breach", "Breach of internal policy"),
    ("Information Handling", "Mishandling of confidential information"),
]

# email, display name, department code, role
USERS = [
    ("alex.morgan@example.com", "Alex Morgan", "TRD", "employee"),
    ("sam.patel@example.com", "Sam Patel", "TRD", "hod"),
    ("jordan.lee@example.com", "Jordan Lee", "OPS", "employee"),
    ("casey.nguyen@example.com", "Casey Nguyen", "RSK", "risk_office"),
    ("admin@example.com", "System Admin", "CMP", "admin"),
]


def ensure_department(db: Session, name: str, code: str) -> Department:
    obj = db.query(Department).filter(Department.code == code).first()
    if obj:
        return obj
    obj = Department(name=name, code=code)
    db.add(obj)
    db.flush()
    return obj


def ensure_named(db: Session, model, name: str, **fields):
    obj = db.query(model).filter(model.name == name).first()
    if obj:
        return obj
    obj = model(name=name, **fields)
    db.add(obj)
    db.flush()
    return obj


def ensure_user(db: Session, email: str, display_name: str, department: Department, role: str) -> User:
    obj = db.query(User).filter(User.email == email).first()
    if obj:
        return obj
    obj = User(email=email, display_name=display_name, department_id=department.id, role=role)
    db.add(obj)
    db.flush()
    return obj


def seed(db: Session) -> None:
    departments = {code: ensure_department(db, name, code) for name, code in DEPARTMENTS}
    for code, names in TEAMS.items():
        for name in names:
            ensure_named(db, Team, name, department_id=departments[code].id)
    for name, description in PROCESSES:
        ensure_named(db, Process, name, description=description)
    for name, description in INCIDENT_TYPES:
        ensure_named(db, IncidentType, name, description=description)
    for email, display_name, code, role in USERS:
        ensure_user(db, email, display_name, departments[code], role)
    db.commit()


def main() -> None:
    setup_logging()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed(db)
        for u in db.query(User).order_by(User.email).all():
            log.info("user %s %s (%s)", u.id, u.email, u.role)
    finally:
        db.close()


if __name__ == "__main__":
    main()
