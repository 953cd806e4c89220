"""
Delivery: in-session behavior.

Components:
- SessionBehaviorMonitor: Fatigue and frustration detection per session
- Engagement analysis: Pacing and completion classification
- Encouragement: Messages for early session ends
"""

from .encouragement import get_encouragement_message, get_parent_explanation
from .engagement import EngagementConfig, analyze_engagement, build_engagement_metrics
from .telemetry import (
    FatigueDetector,
    FatigueState,
    FrustrationDetector,
    FrustrationState,
    MonitorConfig,
    MonitorDecision,
    SessionBehaviorMonitor,
)

__all__ = [
    # Monitor
    "SessionBehaviorMonitor",
    "MonitorConfig",
    "MonitorDecision",
    "FatigueDetector",
    "FatigueState",
    "FrustrationDetector",
    "FrustrationState",
    # Engagement
    "EngagementConfig",
    "analyze_engagement",
    "build_engagement_metrics",
    # Messages
    "get_encouragement_message",
    "get_parent_explanation",
]
