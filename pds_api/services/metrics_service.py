"""Leaderboards over the most recent reporting slot."""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from pds_api.core.exceptions import ValidationError
from pds_api.models.call_record import CallRecord
from pds_api.models.employee import AgentType, Department, Employee

SORT_FIELDS = ("inbound", "outbound", "total")


class MetricsService:
    """Ranks agents by call volume; results are cached briefly in Redis."""

    def __init__(self, cache=None, ttl_seconds: int = 60):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def latest_slot(db: Session):
        """The newest (date, report_time) with data, or None."""
        return (
            db.query(CallRecord.date, CallRecord.report_time)
            .order_by(CallRecord.date.desc(), CallRecord.report_time.desc())
            .first()
        )

    def filtered_calls(
        self,
        db: Session,
        department_id: Optional[int] = None,
        agent_type_id: Optional[int] = None,
        sort_by: str = "total",
        top: bool = True,
        limit: int = 10,
    ) -> Dict[str, Any]:
        if sort_by not in SORT_FIELDS:
            raise ValidationError(f"sort_by must be one of: {', '.join(SORT_FIELDS)}")

        key = f"leaderboard:calls:{department_id}:{agent_type_id}:{sort_by}:{int(top)}:{limit}"
        cached = self.cache.get_json(key) if self.cache is not None else None
        if cached is not None:
            return cached

        result = self._rank(db, department_id, agent_type_id, sort_by, top, limit)
        if self.cache is not None:
            self.cache.set_json(key, result, self.ttl_seconds)
        return result

    def performers(
        self,
        db: Session,
        department_id: Optional[int] = None,
        agent_type_id: Optional[int] = None,
        sort_by: str = "total",
        limit: int = 5,
    ) -> Dict[str, Any]:
        best = self.filtered_calls(db, department_id, agent_type_id, sort_by, True, limit)
        worst = self.filtered_calls(db, department_id, agent_type_id, sort_by, False, limit)
        return {
            "date": best["date"],
            "report_time": best["report_time"],
            "top_performers": best["records"],
            "bottom_performers": worst["records"],
        }

    def _rank(self, db, department_id, agent_type_id, sort_by, top, limit) -> Dict[str, Any]:
        slot = self.latest_slot(db)
        if slot is None:
            return {"date": None, "report_time": None, "records": []}
        day, report_time = slot

        total = (CallRecord.inbound_calls + CallRecord.outbound_calls).label("total_calls")
        metric = {
            "inbound": CallRecord.inbound_calls,
            "outbound": CallRecord.outbound_calls,
            "total": total,
        }[sort_by]

        query = (
            db.query(
                Employee.id, Employee.agent_name, Employee.image_url,
                Department.name, AgentType.name,
                CallRecord.inbound_calls, CallRecord.outbound_calls, total,
            )
            .select_from(CallRecord)
            .join(Employee, CallRecord.employee_id == Employee.id)
            .outerjoin(Department, Employee.department_id == Department.id)
            .outerjoin(AgentType, Employee.agent_type_id == AgentType.id)
            .filter(CallRecord.date == day, CallRecord.report_time == report_time)
        )
        if department_id:
            query = query.filter(Employee.department_id == department_id)
        if agent_type_id:
            query = query.filter(Employee.agent_type_id == agent_type_id)

        order = metric.desc() if top else metric.asc()
        rows = query.order_by(order, Employee.agent_name.asc()).limit(limit).all()

        return {
            "date": day.isoformat(),
            "report_time": report_time.strftime("%H:%M:%S"),
            "records": [
                {
                    "employee_id": emp_id,
                    "agent_name": name,
                    "image_url": image_url,
                    "department": department,
                    "agent_type": agent_type,
                    "inbound_calls": inbound,
                    "outbound_calls": outbound,
                    "total_calls": total_calls,
                }
                for emp_id, name, image_url, department, agent_type, inbound, outbound, total_calls in rows
            ],
        }
