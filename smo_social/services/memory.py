# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

import copy
import os
import platform
from datetime import timedelta
import psutil
from sqlalchemy.orm import Session

from smo_social.errors import NotFoundError, ValidationError
from smo_social.logging_setup import log_event
from smo_social.models import MemoryAlert, MemorySnapshot
from smo_social.services.dates import utcnow, as_utc
from smo_social.services.options import OptionStore

CONFIG_OPTION = "smo_memory_monitor_config"
HISTORY_OPTION = "smo_memory_monitor_config_history"
CONFIG_VERSION = "1.0"
MAX_HISTORY = 100

DEFAULT_CONFIG = {
    "monitoring_enabled": True,
    "monitoring_interval": 10,
    "warning_threshold": 70,
    "critical_threshold": 90,
    "max_history_entries": 100,
    "alert_system_enabled": True,
    "max_active_alerts": 50,
    "auto_resolve_hours": 24,
    "notification_channels": ["admin_dashboard", "log"],
    "email_notifications": False,
    "database_cleanup_interval": 86400,
    "database_max_records": 1000,
    "enable_real_time_monitoring": True,
    "enable_memory_leak_detection": True,
    "enable_efficiency_scoring": True,
}

BOOL_KEYS = {
    "monitoring_enabled", "alert_system_enabled", "email_notifications",
    "enable_real_time_monitoring", "enable_memory_leak_detection", "enable_efficiency_scoring",
}

# key -> (min, max)
INT_RANGES = {
    "monitoring_interval": (1, 60),
    "warning_threshold": (10, 90),
    "critical_threshold": (50, 99),
    "max_history_entries": (10, 10000),
    "max_active_alerts": (10, 10000),
    "database_max_records": (10, 10000),
    "auto_resolve_hours": (1, 720),
    "database_cleanup_interval": (3600, 86400),
}

NOTIFICATION_CHANNELS = ("admin_dashboard", "email", "log", "webhook")

PRESETS = {
    "development": {
        "name": "Development",
        "description": "Frequent monitoring and detailed logging for development",
        "config": {
            "monitoring_enabled": True,
            "monitoring_interval": 5,
            "warning_threshold": 60,
            "critical_threshold": 80,
            "max_history_entries": 200,
            "alert_system_enabled": True,
            "max_active_alerts": 100,
            "auto_resolve_hours": 1,
            "notification_channels": ["admin_dashboard", "log"],
            "email_notifications": False,
            "database_cleanup_interval": 1800,
            "database_max_records": 500,
            "enable_real_time_monitoring": True,
            "enable_memory_leak_detection": True,
            "enable_efficiency_scoring": True,
        },
    },
    "production": {
        "name": "Production",
        "description": "Balanced monitoring and performance",
        "config": {
            "monitoring_enabled": True,
            "monitoring_interval": 30,
            "warning_threshold": 75,
            "critical_threshold": 90,
            "max_history_entries": 500,
            "alert_system_enabled": True,
            "max_active_alerts": 200,
            "auto_resolve_hours": 24,
            "notification_channels": ["admin_dashboard", "email", "log"],
            "email_notifications": True,
            "database_cleanup_interval": 3600,
            "database_max_records": 1000,
            "enable_real_time_monitoring": False,
            "enable_memory_leak_detection": True,
            "enable_efficiency_scoring": True,
        },
    },
    "high_traffic": {
        "name": "High Traffic",
        "description": "Reduced monitoring overhead for high-traffic sites",
        "config": {
            "monitoring_enabled": True,
            "monitoring_interval": 60,
            "warning_threshold": 80,
            "critical_threshold": 95,
            "max_history_entries": 1000,
            "alert_system_enabled": True,
            "max_active_alerts": 500,
            "auto_resolve_hours": 12,
            "notification_channels": ["admin_dashboard", "email", "log", "webhook"],
            "email_notifications": True,
            "database_cleanup_interval": 7200,
            "database_max_records": 2000,
            "enable_real_time_monitoring": False,
            "enable_memory_leak_detection": False,
            "enable_efficiency_scoring": True,
        },
    },
    "minimal": {
        "name": "Minimal",
        "description": "Minimal monitoring for resource-constrained environments",
        "config": {
            "monitoring_enabled": True,
            "monitoring_interval": 300,
            "warning_threshold": 85,
            "critical_threshold": 95,
            "max_history_entries": 50,
            "alert_system_enabled": False,
            "max_active_alerts": 10,
            "auto_resolve_hours": 168,
            "notification_channels": ["log"],
            "email_notifications": False,
            "database_cleanup_interval": 86400,
            "database_max_records": 100,
            "enable_real_time_monitoring": False,
            "enable_memory_leak_detection": False,
            "enable_efficiency_scoring": False,
        },
    },
}

def format_bytes(size: float, precision: int = 2) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    size = max(float(size or 0), 0)
    i = 0
    while size >= 1024 and i < len(units) - 1:
        size /= 1024
        i += 1
    if i == 0:
        return f"{int(size)} B"
    return f"{size:.{precision}f} {units[i]}"

def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)

def validate_config(config: dict) -> dict:
    """Coerce and clamp known keys; unknown keys are dropped. Raises on an empty result."""
    if not isinstance(config, dict) or not config:
        raise ValidationError("Invalid configuration")

    validated = {}
    for key, value in config.items():
        if key in BOOL_KEYS:
            validated[key] = _to_bool(value)
        elif key in INT_RANGES:
            try:
                n = int(float(value))
            except (TypeError, ValueError):
                continue
            lo, hi = INT_RANGES[key]
            validated[key] = max(lo, min(hi, n))
        elif key == "notification_channels":
            if isinstance(value, str):
                value = [v.strip() for v in value.split(",")]
            if isinstance(value, (list, tuple)):
                validated[key] = [c for c in value if c in NOTIFICATION_CHANNELS]

    if not validated:
        raise ValidationError("Invalid configuration")
    return validated


class MemoryMonitorConfig:
    def __init__(self, db: Session):
        self.store = OptionStore(db)

    def get_custom_config(self) -> dict:
        return self.store.get_option(CONFIG_OPTION, {}) or {}

    def get_config(self) -> dict:
        config = copy.deepcopy(DEFAULT_CONFIG)
        config.update(self.get_custom_config())
        return config

    def get(self, key: str):
        return self.get_config().get(key, DEFAULT_CONFIG.get(key))

    def update_config(self, new_config: dict, user_id: int | None = None) -> dict:
        validated = validate_config(new_config)
        old = self.get_config()
        custom = {**self.get_custom_config(), **validated}
        self.store.update_option(CONFIG_OPTION, custom)
        log_event("memory_config_updated", changed_keys=sorted(validated))
        return self._log_change("update", old, user_id)

    def reset_to_defaults(self, user_id: int | None = None) -> dict:
        old = self.get_config()
        self.store.update_option(CONFIG_OPTION, {})
        log_event("memory_config_reset")
        return self._log_change("reset", old, user_id)

    def get_presets(self) -> dict:
        return copy.deepcopy(PRESETS)

    def apply_preset(self, preset_name: str, user_id: int | None = None) -> dict:
        preset = PRESETS.get(preset_name)
        if not preset:
            raise ValidationError(f"Unknown preset: {preset_name}")
        old = self.get_config()
        self.store.update_option(CONFIG_OPTION, validate_config(preset["config"]))
        log_event("memory_preset_applied", preset=preset_name)
        return self._log_change(f"preset:{preset_name}", old, user_id)

    def export_config(self) -> dict:
        return {
            "version": CONFIG_VERSION,
            "timestamp": utcnow().isoformat(),
            "configuration": self.get_config(),
            "system_info": {
                "python_version": platform.python_version(),
                "platform": platform.platform(),
                "memory_total": psutil.virtual_memory().total,
            },
        }

    def import_config(self, import_data: dict, user_id: int | None = None) -> dict:
        if not isinstance(import_data, dict) or not isinstance(import_data.get("configuration"), dict):
            raise ValidationError("Invalid import data: a configuration object is required")
        validated = validate_config(import_data["configuration"])
        old = self.get_config()
        self.store.update_option(CONFIG_OPTION, {**self.get_custom_config(), **validated})
        log_event("memory_config_imported", changed_keys=sorted(validated), source_version=import_data.get("version"))
        return self._log_change("import", old, user_id)

    def get_change_history(self, limit: int = 50) -> list[dict]:
        history = self.store.get_option(HISTORY_OPTION, []) or []
        return list(reversed(history))[:limit]

    def get_config_change_history(self) -> dict:
        config = self.get_config()
        history = self.get_change_history()
        return {
            "last_updated": history[0]["timestamp"] if history else None,
            "current_version": CONFIG_VERSION,
            "changes_since_default": {k: v for k, v in config.items() if DEFAULT_CONFIG.get(k) != v},
            "recent_changes": history,
        }

    def _log_change(self, action: str, old: dict, user_id: int | None) -> dict:
        new = self.get_config()
        history = list(self.store.get_option(HISTORY_OPTION, []) or [])
        history.append({
            "timestamp": utcnow().isoformat(),
            "action": action,
            "user_id": user_id if user_id is not None else "system",
            "changes": {k: v for k, v in new.items() if old.get(k) != v},
        })
        self.store.update_option(HISTORY_OPTION, history[-MAX_HISTORY:])
        return new

    def validate_current_config(self) -> dict:
        config = self.get_config()
        issues, warnings = [], []
        if config["critical_threshold"] <= config["warning_threshold"]:
            issues.append("Critical threshold must be higher than the warning threshold")
        if config["monitoring_interval"] < 5 and not config["enable_real_time_monitoring"]:
            warnings.append("Short monitoring intervals add overhead without real-time monitoring")
        if config["alert_system_enabled"] and not config["notification_channels"]:
            warnings.append("Alerts are enabled but no notification channel is selected")
        return {"is_valid": not issues, "issues": issues, "warnings": warnings}


def snapshot_to_dict(s: MemorySnapshot) -> dict:
    return {
        "id": s.id,
        "timestamp": as_utc(s.timestamp),
        "total_usage": s.total_usage,
        "total_usage_formatted": format_bytes(s.total_usage),
        "memory_limit": s.memory_limit,
        "memory_limit_formatted": format_bytes(s.memory_limit),
        "usage_percentage": s.usage_percentage,
        "efficiency_score": s.efficiency_score,
        "status": s.status,
        "memory_data": s.memory_data or {},
    }

def alert_to_dict(a: MemoryAlert) -> dict:
    return {
        "id": a.id,
        "severity": a.severity,
        "message": a.message,
        "usage_percentage": a.usage_percentage,
        "created_at": as_utc(a.created_at),
        "resolved_at": as_utc(a.resolved_at),
    }

def linear_slope(values: list[float]) -> float:
    n = len(values)
    if n < 2:
        return 0.0
    mean_x = (n - 1) / 2
    mean_y = sum(values) / n
    num = sum((i - mean_x) * (v - mean_y) for i, v in enumerate(values))
    den = sum((i - mean_x) ** 2 for i in range(n))
    return num / den if den else 0.0


class MemoryMonitor:
    """
    Samples this process's memory with psutil and keeps a bounded history.

    The limit a sample is measured against is the host's total physical
    memory, so usage_percentage is the process footprint relative to the box.
    """

    LEAK_WINDOW = 5
    LEAK_SLOPE_THRESHOLD = 0.5

    def __init__(self, db: Session, config: MemoryMonitorConfig | None = None):
        self.db = db
        self.config = config or MemoryMonitorConfig(db)

    def collect_usage(self) -> dict:
        proc = psutil.Process(os.getpid())
        info = proc.memory_info()
        vm = psutil.virtual_memory()
        return {
            "rss": info.rss,
            "vms": info.vms,
            "threads": proc.num_threads(),
            "system_total": vm.total,
            "system_available": vm.available,
            "system_percent": vm.percent,
        }

    def _recent(self, limit: int) -> list[MemorySnapshot]:
        rows = self.db.query(MemorySnapshot).order_by(MemorySnapshot.timestamp.desc(), MemorySnapshot.id.desc()).limit(limit).all()
        return list(reversed(rows))

    def calculate_status(self, usage_percentage: float, cfg: dict) -> str:
        if usage_percentage >= cfg["critical_threshold"]:
            return "critical"
        if usage_percentage >= cfg["warning_threshold"]:
            return "warning"
        return "normal"

    def calculate_efficiency(self, usage_percentage: float, cfg: dict) -> float:
        if not cfg["enable_efficiency_scoring"]:
            return 100.0
        penalties = 0.0
        multiplier = 2.5 if cfg["enable_real_time_monitoring"] else 2.0
        if usage_percentage > 80:
            penalties += (usage_percentage - 80) * multiplier
        elif usage_percentage > 60:
            penalties += (usage_percentage - 60) * 0.5

        recent = self._recent(3)
        if len(recent) >= 3 and recent[0].total_usage:
            trend = (recent[-1].total_usage - recent[0].total_usage) / recent[0].total_usage
            if trend > 0.05:
                penalties += min(30, trend * 500)

        return round(max(0.0, min(100.0, 100.0 - penalties)), 1)

    def perform_memory_monitoring(self, force: bool = False) -> dict | None:
        cfg = self.config.get_config()
        if not cfg["monitoring_enabled"] and not force:
            return None

        usage = self.collect_usage()
        limit = usage["system_total"] or 1
        pct = round(usage["rss"] / limit * 100, 2)
        status = self.calculate_status(pct, cfg)
        efficiency = self.calculate_efficiency(pct, cfg)

        snap = MemorySnapshot(
            timestamp=utcnow(),
            total_usage=usage["rss"],
            memory_limit=limit,
            usage_percentage=pct,
            efficiency_score=efficiency,
            status=status,
            memory_data=usage,
        )
        self.db.add(snap)
        self.db.commit()
        self.db.refresh(snap)

        self.trim_history(cfg["database_max_records"])
        if cfg["alert_system_enabled"]:
            self.check_memory_alerts(snap, cfg)
            if cfg["enable_memory_leak_detection"]:
                self.check_for_memory_leaks(cfg)
            self.auto_resolve_alerts(cfg["auto_resolve_hours"])

        level = {"critical": "error", "warning": "warning"}.get(status, "info")
        log_event(
            "memory_usage",
            level=level,
            usage_percentage=pct,
            total_usage=format_bytes(usage["rss"]),
            memory_limit=format_bytes(limit),
            memory_status=status,
            efficiency_score=efficiency,
        )
        return snapshot_to_dict(snap)

    def trim_history(self, max_records: int) -> int:
        keep = [
            i for (i,) in self.db.query(MemorySnapshot.id)
            .order_by(MemorySnapshot.timestamp.desc(), MemorySnapshot.id.desc())
            .limit(max_records)
            .all()
        ]
        if not keep:
            return 0
        deleted = self.db.query(MemorySnapshot).filter(~MemorySnapshot.id.in_(keep)).delete(synchronize_session=False)
        self.db.commit()
        return deleted

    def cleanup(self) -> dict:
        cfg = self.config.get_config()
        trimmed = self.trim_history(cfg["database_max_records"])
        cutoff = utcnow() - timedelta(days=30)
        old_alerts = [
            a for a in self.db.query(MemoryAlert).filter(MemoryAlert.resolved_at != None).all()
            if as_utc(a.resolved_at) < cutoff
        ]
        for a in old_alerts:
            self.db.delete(a)
        self.db.commit()
        log_event("memory_cleanup", snapshots_removed=trimmed, alerts_removed=len(old_alerts))
        return {"snapshots_removed": trimmed, "alerts_removed": len(old_alerts)}

    def _active_alerts_query(self):
        return self.db.query(MemoryAlert).filter(MemoryAlert.resolved_at == None)

    def _raise_alert(self, severity: str, message: str, usage_percentage: float | None, cfg: dict) -> MemoryAlert | None:
        active = self._active_alerts_query()
        if active.count() >= cfg["max_active_alerts"]:
            return None
        if active.filter(MemoryAlert.severity == severity, MemoryAlert.message == message).first():
            return None
        alert = MemoryAlert(severity=severity, message=message, usage_percentage=usage_percentage)
        self.db.add(alert)
        self.db.commit()
        if "log" in cfg["notification_channels"]:
            log_event("memory_alert", level="warning", severity=severity, alert=message)
        return alert

    def check_memory_alerts(self, snap: MemorySnapshot, cfg: dict) -> None:
        used_mb = snap.total_usage / (1024 * 1024)
        limit_mb = snap.memory_limit / (1024 * 1024)
        if snap.status == "critical":
            self._raise_alert(
                "critical",
                f"Critical Memory Usage: memory usage has reached {snap.usage_percentage:.1f}% ({used_mb:.1f} MB / {limit_mb:.1f} MB)",
                snap.usage_percentage, cfg,
            )
        elif snap.status == "warning":
            self._raise_alert(
                "warning",
                f"High Memory Usage Warning: memory usage is approaching critical levels at {snap.usage_percentage:.1f}% ({used_mb:.1f} MB / {limit_mb:.1f} MB)",
                snap.usage_percentage, cfg,
            )
        else:
            # usage back to normal clears usage alerts
            now = utcnow()
            for a in self._active_alerts_query().filter(MemoryAlert.severity.in_(("warning", "critical"))).all():
                if a.usage_percentage is not None:
                    a.resolved_at = now
            self.db.commit()

    def check_for_memory_leaks(self, cfg: dict) -> bool:
        recent = self._recent(self.LEAK_WINDOW)
        if len(recent) < self.LEAK_WINDOW:
            return False
        for prev, curr in zip(recent, recent[1:]):
            if curr.total_usage <= prev.total_usage:
                return False
        increase = recent[-1].total_usage - recent[0].total_usage
        increase_pct = increase / recent[0].total_usage * 100 if recent[0].total_usage else 0
        if increase_pct <= 5:
            return False
        self._raise_alert(
            "critical",
            f"Potential Memory Leak Detected: memory usage has consistently increased by {increase_pct:.1f}% "
            f"({increase / (1024 * 1024):.1f} MB) over the last {len(recent)} monitoring cycles",
            None, cfg,
        )
        return True

    def auto_resolve_alerts(self, hours: int) -> int:
        cutoff = utcnow() - timedelta(hours=hours)
        resolved = 0
        for a in self._active_alerts_query().all():
            if a.created_at and as_utc(a.created_at) <= cutoff:
                a.resolved_at = utcnow()
                resolved += 1
        self.db.commit()
        return resolved

    def get_active_alerts(self) -> list[dict]:
        rows = self._active_alerts_query().order_by(MemoryAlert.created_at.desc(), MemoryAlert.id.desc()).all()
        return [alert_to_dict(a) for a in rows]

    def resolve_alert(self, alert_id: int) -> dict:
        a = self.db.query(MemoryAlert).filter(MemoryAlert.id == alert_id).first()
        if not a:
            raise NotFoundError("Alert", alert_id)
        if a.resolved_at is None:
            a.resolved_at = utcnow()
            self.db.commit()
        return alert_to_dict(a)

    def get_current_stats(self) -> dict:
        latest = self._recent(1)
        if not latest:
            return {}
        stats = snapshot_to_dict(latest[0])
        stats["active_alerts"] = self._active_alerts_query().count()
        return stats

    def get_database_memory_history(self, limit: int = 100, status: str = "") -> list[dict]:
        q = self.db.query(MemorySnapshot)
        if status:
            q = q.filter(MemorySnapshot.status == status)
        rows = q.order_by(MemorySnapshot.timestamp.desc(), MemorySnapshot.id.desc()).limit(max(1, int(limit))).all()
        return [snapshot_to_dict(s) for s in reversed(rows)]

    def get_memory_efficiency_analysis(self) -> dict:
        history = self._recent(self.config.get("max_history_entries"))
        if not history:
            return {"average_usage": 0, "peak_usage": 0, "average_efficiency": 0, "trend": "stable", "recommendations": []}

        count = len(history)
        analysis = {
            "average_usage": round(sum(h.usage_percentage for h in history) / count, 2),
            "peak_usage": max(h.usage_percentage for h in history),
            "average_efficiency": round(sum(h.efficiency_score for h in history) / count, 2),
            "trend": "stable",
            "recommendations": [],
        }
        if count >= 3:
            first, last = history[-3].usage_percentage, history[-1].usage_percentage
            if last > first + 5:
                analysis["trend"] = "increasing"
            elif last < first - 5:
                analysis["trend"] = "decreasing"

        if analysis["average_usage"] > 80:
            analysis["recommendations"].append("Consider increasing the memory available to the application")
        if analysis["average_efficiency"] < 60:
            analysis["recommendations"].append("Review cache and connection pool configurations for better efficiency")
        if analysis["trend"] == "increasing":
            analysis["recommendations"].append("Monitor for potential memory leaks")
        return analysis

    def get_memory_leak_patterns(self, hours: int = 24) -> dict:
        since = utcnow() - timedelta(hours=hours)
        rows = [s for s in self._recent(self.config.get("database_max_records")) if as_utc(s.timestamp) >= since]
        values = [s.usage_percentage for s in rows]
        slope = linear_slope(values)
        growth = 0.0
        if len(rows) >= 2 and rows[0].total_usage:
            growth = round((rows[-1].total_usage - rows[0].total_usage) / rows[0].total_usage * 100, 2)
        return {
            "window_hours": hours,
            "samples": len(rows),
            "slope": round(slope, 4),
            "growth_percentage": growth,
            "leak_suspected": len(rows) >= self.LEAK_WINDOW and slope > self.LEAK_SLOPE_THRESHOLD,
        }

    def get_usage_patterns(self) -> dict:
        buckets = {}
        for s in self._recent(self.config.get("database_max_records")):
            buckets.setdefault(as_utc(s.timestamp).hour, []).append(s.usage_percentage)
        hourly = {h: round(sum(v) / len(v), 2) for h, v in sorted(buckets.items())}
        peak_hour = max(hourly.items(), key=lambda kv: kv[1])[0] if hourly else None
        return {"hourly": hourly, "peak_hour": peak_hour}

    def generate_optimization_recommendations(self) -> list[dict]:
        cfg = self.config.get_config()
        analysis = self.get_memory_efficiency_analysis()
        leaks = self.get_memory_leak_patterns(24)
        recs = []

        if analysis["peak_usage"] >= cfg["critical_threshold"]:
            recs.append({
                "priority": "high",
                "title": "Peak usage reached the critical threshold",
                "description": f"Peak usage hit {analysis['peak_usage']:.1f}%. Add memory or reduce worker concurrency.",
            })
        if leaks["leak_suspected"]:
            recs.append({
                "priority": "high",
                "title": "Possible memory leak",
                "description": f"Usage grew {leaks['growth_percentage']}% over the last {leaks['window_hours']} hours across {leaks['samples']} samples.",
            })
        for text in analysis["recommendations"]:
            recs.append({"priority": "medium", "title": text, "description": text})
        if cfg["monitoring_interval"] < 10 and not cfg["enable_real_time_monitoring"]:
            recs.append({
                "priority": "low",
                "title": "Lengthen the monitoring interval",
                "description": "Sampling more often than every 10 seconds adds overhead when real-time monitoring is off.",
            })
        return recs
