from smo_social.logging_setup import log_event
from smo_social.services.dates import to_local
from smo_social.services.memory import MemoryMonitor

CHART_POINTS = 50

STATUS_BADGES = {
    "normal": "🟢 Normal",
    "warning": "🟡 Warning",
    "critical": "🔴 Critical",
}

def empty_dashboard() -> dict:
    return {
        "current_stats": {},
        "efficiency_analysis": {},
        "active_alerts": [],
        "config": {},
        "chart_data": {"labels": [], "datasets": []},
        "memory_leaks": {},
        "usage_patterns": {},
        "recommendations": [],
    }

def status_badge(status: str | None) -> str:
    return STATUS_BADGES.get(status or "", "⚪ Unknown")

def usage_trend_badge(usage_percentage: float) -> str:
    if usage_percentage >= 90:
        return "🔴 High"
    if usage_percentage >= 70:
        return "🟡 Moderate"
    return "🟢 Low"

def efficiency_badge(score: float) -> str:
    if score >= 80:
        return "🟢 Excellent"
    if score >= 60:
        return "🟡 Good"
    return "🔴 Needs Attention"

def format_chart_data(history: list[dict]) -> dict:
    return {
        "labels": [to_local(h["timestamp"]).strftime("%H:%M") for h in history],
        "datasets": [
            {
                "label": "Memory Usage %",
                "data": [h["usage_percentage"] for h in history],
                "borderColor": "rgb(75, 192, 192)",
                "tension": 0.1,
            },
            {
                "label": "Efficiency Score",
                "data": [h["efficiency_score"] for h in history],
                "borderColor": "rgb(255, 99, 132)",
                "tension": 0.1,
            },
        ],
    }


class MemoryDashboardView:
    def __init__(self, monitor: MemoryMonitor):
        self.monitor = monitor

    def get_dashboard_data(self) -> dict:
        try:
            stats = self.monitor.get_current_stats()
            if stats:
                stats["status_badge"] = status_badge(stats.get("status"))
                stats["usage_badge"] = usage_trend_badge(stats.get("usage_percentage") or 0)
                stats["efficiency_badge"] = efficiency_badge(stats.get("efficiency_score") or 0)
            return {
                "current_stats": stats,
                "efficiency_analysis": self.monitor.get_memory_efficiency_analysis(),
                "active_alerts": self.monitor.get_active_alerts(),
                "config": self.monitor.config.get_config(),
                "chart_data": format_chart_data(self.monitor.get_database_memory_history(CHART_POINTS)),
                "memory_leaks": self.monitor.get_memory_leak_patterns(24),
                "usage_patterns": self.monitor.get_usage_patterns(),
                "recommendations": self.monitor.generate_optimization_recommendations(),
            }
        except Exception as e:
            log_event("memory_dashboard_failed", level="error", error=str(e), error_type=type(e).__name__)
            return empty_dashboard()
