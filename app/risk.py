"""Respiratory risk scoring from environmental readings."""

from typing import Dict, List, Tuple

from app.models import EnvironmentalSnapshot, RiskAssessment, RiskLevel

POOR_AIR_TRIGGER = "Poor Air Quality"
MODERATE_AIR_TRIGGER = "Moderate Air Pollution"
COLD_AIR_TRIGGER = "Cold Air"
EXTREME_HEAT_TRIGGER = "Extreme Heat"
HIGH_HUMIDITY_TRIGGER = "High Humidity"
HIGH_WIND_TRIGGER = "High Wind (Allergens)"
NO_TRIGGER = "None detected"

ADVICE = {
    POOR_AIR_TRIGGER: "Air quality is very poor. Avoid all outdoor activities and keep windows closed.",
    MODERATE_AIR_TRIGGER: "Air quality is moderate. Sensitive individuals should limit prolonged outdoor exertion.",
    COLD_AIR_TRIGGER: "Cold air can trigger bronchospasm. Wear a scarf to warm the air you breathe.",
    EXTREME_HEAT_TRIGGER: "High heat can increase ozone levels. Stay in air-conditioned spaces.",
    HIGH_HUMIDITY_TRIGGER: "High humidity can harbor mold and dust mites. Use a dehumidifier.",
    HIGH_WIND_TRIGGER: "Wind can stir up pollen and dust. Keep windows closed.",
    NO_TRIGGER: "Conditions are currently stable. Enjoy your day but keep your rescue inhaler nearby.",
}

# (text color, background color) per level
RISK_COLORS: Dict[RiskLevel, Tuple[str, str]] = {
    RiskLevel.EXTREME: ("text-rose-600", "bg-rose-50"),
    RiskLevel.HIGH: ("text-orange-500", "bg-orange-50"),
    RiskLevel.MODERATE: ("text-amber-500", "bg-amber-50"),
    RiskLevel.LOW: ("text-emerald-500", "bg-emerald-50"),
}

AQI_LEVELS: List[Dict[str, str]] = [
    {"label": "Good", "color": "text-emerald-500", "bg": "bg-emerald-50"},
    {"label": "Fair", "color": "text-amber-500", "bg": "bg-amber-50"},
    {"label": "Moderate", "color": "text-orange-500", "bg": "bg-orange-50"},
    {"label": "Poor", "color": "text-rose-500", "bg": "bg-rose-50"},
    {"label": "Very Poor", "color": "text-purple-500", "bg": "bg-purple-50"},
]


def evaluate_triggers(snapshot: EnvironmentalSnapshot) -> List[Tuple[str, int]]:
    """
    Evaluate every scoring rule against a snapshot.

    Rules run in a fixed order: air quality, temperature, humidity, wind.
    Air quality and temperature each contribute at most one trigger.

    Args:
        snapshot: Normalized environmental readings

    Returns:
        List of (trigger label, points) in evaluation order
    """
    matched: List[Tuple[str, int]] = []

    aqi = snapshot.air_quality_index
    if aqi >= 4:
        matched.append((POOR_AIR_TRIGGER, 3))
    elif aqi >= 3:
        matched.append((MODERATE_AIR_TRIGGER, 2))

    # Both temperature bounds are strict: 10 and 32 trigger nothing.
    if snapshot.temperature_c < 10:
        matched.append((COLD_AIR_TRIGGER, 2))
    elif snapshot.temperature_c > 32:
        matched.append((EXTREME_HEAT_TRIGGER, 1))

    if snapshot.humidity_pct > 75:
        matched.append((HIGH_HUMIDITY_TRIGGER, 2))

    if snapshot.wind_speed_mps > 10:
        matched.append((HIGH_WIND_TRIGGER, 1))

    return matched


def level_from_score(score: int) -> RiskLevel:
    """
    Map a cumulative score onto a risk level.

    Args:
        score: Non-negative trigger score

    Returns:
        Extreme (>=5), High (>=3), Moderate (>=1) or Low
    """
    if score >= 5:
        return RiskLevel.EXTREME
    elif score >= 3:
        return RiskLevel.HIGH
    elif score >= 1:
        return RiskLevel.MODERATE
    else:
        return RiskLevel.LOW


def assess(snapshot: EnvironmentalSnapshot) -> RiskAssessment:
    """
    Derive a respiratory risk assessment from a snapshot.

    Pure and deterministic. A score of zero yields a Low assessment carrying
    the single "None detected" trigger and the stock stable-conditions advice.

    Args:
        snapshot: Normalized environmental readings

    Returns:
        RiskAssessment with level, score, triggers and aligned advice
    """
    matched = evaluate_triggers(snapshot)
    score = sum(points for _, points in matched)

    if score == 0:
        return RiskAssessment(
            level=RiskLevel.LOW,
            score=0,
            triggers=[NO_TRIGGER],
            advice=[ADVICE[NO_TRIGGER]],
        )

    triggers = [label for label, _ in matched]
    return RiskAssessment(
        level=level_from_score(score),
        score=score,
        triggers=triggers,
        advice=[ADVICE[label] for label in triggers],
    )


def get_risk_color(level: RiskLevel) -> str:
    """Text color class for a risk level."""
    return RISK_COLORS[RiskLevel(level)][0]


def get_risk_bg_color(level: RiskLevel) -> str:
    """Background color class for a risk level."""
    return RISK_COLORS[RiskLevel(level)][1]


def get_aqi_label(aqi: int) -> Dict[str, str]:
    """
    Look up the display label for an AQI reading.

    Out-of-range values are clamped into 1-5.
    """
    index = min(max(int(aqi), 1), len(AQI_LEVELS)) - 1
    return AQI_LEVELS[index]
