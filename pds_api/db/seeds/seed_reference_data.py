"""Seed call-center departments and agent types."""

from sqlalchemy.orm import Session
from pds_api.models.employee import AgentType, Department

DEPARTMENTS = [
    {"name": "111", "description": "Department 111"},
    {"name": "114", "description": "Department 114"},
]

AGENT_TYPES = [
    {"name": "LVC", "description": "Low value customer agent"},
    {"name": "HVC", "description": "High value customer agent"},
]


def seed_reference_data(db: Session) -> int:
    added = 0
    for model, rows in ((Department, DEPARTMENTS), (AgentType, AGENT_TYPES)):
        for row in rows:
            if not db.query(model).filter(model.name == row["name"]).first():
                db.add(model(**row))
                added += 1
    db.commit()
    return added
