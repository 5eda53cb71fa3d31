from __future__ import annotations

import json
from threading import RLock
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .config import Settings
from .models import AppSetting

STAKEHOLDER_VIEWS = ("grid", "list", "pipeline")

DEFAULT_DEBUG_PREFERENCES: Dict[str, bool] = {
    "show_column_info": True,
    "show_task_details": True,
    "show_grid_lines": True,
    "show_performance_metrics": False,
    "show_scroll_info": False,
}

PERSISTED_KEYS = {
    "gantt_debug_mode",
    "gantt_debug_preferences",
    "stakeholder_view",
    "weekly_capacity_hours",
}


def _normalize_debug_preferences(value: Optional[Dict[str, Any]]) -> Dict[str, bool]:
    preferences = dict(DEFAULT_DEBUG_PREFERENCES)
    if isinstance(value, dict):
        for key in DEFAULT_DEBUG_PREFERENCES:
            if key in value and value[key] is not None:
                preferences[key] = bool(value[key])
    return preferences


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


class RuntimeState:
    """UI preferences that survive restarts, persisted in ``app_settings``."""

    def __init__(self, base_settings: Settings):
        self._lock = RLock()
        self.gantt_debug_mode: bool = False
        self.gantt_debug_preferences: Dict[str, bool] = dict(DEFAULT_DEBUG_PREFERENCES)
        self.stakeholder_view: str = "grid"
        self.weekly_capacity_hours: float = float(base_settings.weekly_capacity_hours)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "gantt_debug_mode": self.gantt_debug_mode,
                "gantt_debug_preferences": dict(self.gantt_debug_preferences),
                "stakeholder_view": self.stakeholder_view,
                "weekly_capacity_hours": self.weekly_capacity_hours,
            }

    def apply(self, updates: Dict[str, Any]) -> None:
        with self._lock:
            if "gantt_debug_mode" in updates and updates["gantt_debug_mode"] is not None:
                self.gantt_debug_mode = _parse_bool(updates["gantt_debug_mode"])
            if "gantt_debug_preferences" in updates and updates["gantt_debug_preferences"] is not None:
                merged = dict(self.gantt_debug_preferences)
                merged.update(updates["gantt_debug_preferences"])
                self.gantt_debug_preferences = _normalize_debug_preferences(merged)
            if "stakeholder_view" in updates and updates["stakeholder_view"] in STAKEHOLDER_VIEWS:
                self.stakeholder_view = updates["stakeholder_view"]
            if "weekly_capacity_hours" in updates and updates["weekly_capacity_hours"] not in (None, ""):
                self.weekly_capacity_hours = float(updates["weekly_capacity_hours"])

    def load_from_db(self, session: Session) -> None:
        records = session.query(AppSetting).all()
        if not records:
            return
        decoded: Dict[str, Any] = {}
        for record in records:
            if record.key == "gantt_debug_mode":
                decoded["gantt_debug_mode"] = _parse_bool(record.value)
            elif record.key == "gantt_debug_preferences":
                try:
                    decoded["gantt_debug_preferences"] = json.loads(record.value)
                except json.JSONDecodeError:
                    decoded["gantt_debug_preferences"] = {}
            elif record.key == "stakeholder_view":
                decoded["stakeholder_view"] = record.value
            elif record.key == "weekly_capacity_hours":
                decoded["weekly_capacity_hours"] = float(record.value) if record.value else None
        if decoded:
            self.apply(decoded)

    def persist(self, session: Session, updates: Dict[str, Any]) -> None:
        snapshot = self.snapshot()
        for key in updates:
            if key not in PERSISTED_KEYS:
                continue
            value = snapshot[key]
            if key == "gantt_debug_preferences":
                value = json.dumps(value)
            elif key == "gantt_debug_mode":
                value = "true" if value else "false"
            else:
                value = str(value)
            record = session.query(AppSetting).filter(AppSetting.key == key).one_or_none()
            if record:
                record.value = value
            else:
                session.add(AppSetting(key=key, value=value))
        session.commit()
