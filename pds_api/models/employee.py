"""Call-center reference data: departments, agent types and employees."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from pds_api.db.base import Base


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(String(255), nullable=True)


class AgentType(Base):
    __tablename__ = "agent_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(String(255), nullable=True)


class Employee(Base):
    """Call-center agent, matched to CSV rows by ``agent_name``."""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_name = Column(String(150), unique=True, nullable=False, index=True)
    agent_type_id = Column(Integer, ForeignKey("agent_types.id"), nullable=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    department = relationship("Department", lazy="joined")
    agent_type = relationship("AgentType", lazy="joined")
