from enum import Enum


class Domain(str, Enum):
    health = "health"
    activity = "activity"
    location = "location"
    voice = "voice"
    mood = "mood"
    weather = "weather"
    temporal = "temporal"
    streak = "streak"


class CorrelationType(str, Enum):
    rank = "rank"        # Spearman-style, primary
    linear = "linear"    # Pearson-style, secondary


class LagDirection(str, Enum):
    same_day = "same_day"
    a_leads_b = "A_leads_B"
    b_leads_a = "B_leads_A"


class TrendDirection(str, Enum):
    strengthening = "strengthening"
    stable = "stable"
    weakening = "weakening"


class ConnectionDirection(str, Enum):
    positive = "positive"
    negative = "negative"


class ConnectionStrength(str, Enum):
    weak = "weak"           # |rho| < 0.4
    moderate = "moderate"   # 0.4 <= |rho| < 0.7
    strong = "strong"       # |rho| >= 0.7


class ConnectionCategory(str, Enum):
    health_activity = "health-activity"
    mood_activity = "mood-activity"
    mood_health = "mood-health"
    health_time = "health-time"
    activity_sequence = "activity-sequence"
    environment = "environment"
    other = "other"


class Confounder(str, Enum):
    day_of_week = "day_of_week"
    is_weekend = "is_weekend"
