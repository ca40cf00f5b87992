"""
Recovery Plugin — post-workout recovery planning.

This plugin provides:
  - recovery_optimizer tool: recovery score (0-10), next-day plan,
    sleep and supplement suggestions
  - an intent rule routing "how do I recover / I'm sore" questions to it
"""

import logging
import re

from core.classification import IntentRule
from domain import ParamSpec, ToolDescriptor
from plugins import CoachPlugin

logger = logging.getLogger(__name__)

PLUGIN_ID = "recovery"

IMMEDIATE_ACTIONS = [
    "Hydrate with 500ml water + electrolytes",
    "Consume protein within 30 minutes",
    "Light stretching for 10 minutes",
]

NUTRITION_FOCUS = [
    "Increase protein to 1.6g/kg body weight",
    "Anti-inflammatory foods (berries, leafy greens)",
    "Adequate carbs for glycogen replenishment",
]

RECOVERY_TOOL = ToolDescriptor(
    name="recovery_optimizer",
    description="Optimize recovery based on workout intensity, HRV, stress and sleep",
    parameters={
        "workout_intensity": ParamSpec("number", required=True,
                                       description="Session intensity on a 0-10 scale"),
        "hrv": ParamSpec("number", description="Heart rate variability in ms"),
        "stress_level": ParamSpec("number", description="Self-reported stress, 0-10"),
        "sleep_hours": ParamSpec("number", description="Hours slept last night"),
        "sleep_quality": ParamSpec("number", description="Sleep quality score, 0-100"),
    },
)


# ── Scoring ──

def recovery_score(intensity: float, hrv=None, sleep_hours=None, sleep_quality=None) -> float:
    score = 10 - (intensity / 10) * 2
    if hrv is not None and hrv < 50:
        score -= 2
    if sleep_hours is not None and sleep_hours < 7:
        score -= 1
    if sleep_quality is not None and sleep_quality < 70:
        score -= 1
    return round(max(0.0, min(10.0, score)), 1)


def next_day_plan(score: float) -> list[str]:
    if score < 5:
        return ["Rest day or light yoga", "Focus on mobility work", "Prioritize sleep (8+ hours)"]
    if score < 7:
        return ["Light cardio or technique work", "Reduced volume training",
                "Active recovery activities"]
    return ["Normal training can resume", "Consider progressive overload", "Monitor fatigue levels"]


def sleep_recommendations(sleep_hours=None) -> list[str]:
    recs = ["Maintain consistent sleep schedule", "Create cool, dark sleeping environment"]
    if sleep_hours is not None and sleep_hours < 7:
        recs.append("Aim for 7-9 hours of sleep")
    return recs


def supplement_suggestions(score: float, stress_level=None) -> list[str]:
    suggestions = []
    if score < 6:
        suggestions += ["Magnesium for muscle recovery", "Omega-3 for inflammation"]
    if stress_level is not None and stress_level > 7:
        suggestions.append("Ashwagandha for stress management")
    suggestions.append("Creatine for strength and recovery")
    return suggestions


def optimize_recovery(params: dict) -> dict:
    intensity = float(params["workout_intensity"])
    if not 0 <= intensity <= 10:
        raise ValueError("workout_intensity must be between 0 and 10")
    sleep_hours = params.get("sleep_hours")
    score = recovery_score(intensity, params.get("hrv"), sleep_hours, params.get("sleep_quality"))
    readiness = "ready" if score > 7 else "light activity only"
    hours = round(24 + (10 - score) * 4)
    plan = next_day_plan(score)
    return {
        "recovery_score": score,
        "recovery_plan": {
            "immediate_actions": list(IMMEDIATE_ACTIONS),
            "next_day_plan": plan,
            "nutrition_focus": list(NUTRITION_FOCUS),
            "sleep_optimization": sleep_recommendations(sleep_hours),
            "supplement_suggestions": supplement_suggestions(score, params.get("stress_level")),
        },
        "estimated_recovery_time": f"{hours} hours",
        "next_workout_readiness": readiness,
        "summary": (f"Recovery score {score}/10, about {hours} hours to full recovery "
                    f"({readiness}). Tomorrow: {plan[0].lower()}."),
    }


# ── Intent rule ──

_INTENSITY_NUMBER = re.compile(r"\bintensity\D{0,6}(\d{1,2}(?:\.\d+)?)|(\d{1,2})\s*/\s*10\b")
_INTENSITY_WORDS = [
    (9.0, re.compile(r"\b(brutal|max(?:imal)? effort|destroyed|all[\s-]out|exhausted)\b")),
    (7.0, re.compile(r"\b(hard|intense|heavy|tough)\b")),
    (3.0, re.compile(r"\b(easy|light|gentle)\b")),
]
_STRESS = re.compile(r"\bstress(?:ed)?\D{0,8}(\d{1,2})\b")
_HRV = re.compile(r"\bhrv\D{0,12}(\d{1,3})")
_SLEEP = re.compile(r"(?:slept|sleep)\D{0,15}(\d{1,2}(?:\.\d+)?)\s*(?:h|hrs?|hours?)\b")


def extract_recovery_params(text: str) -> dict:
    intensity = 5.0
    m = _INTENSITY_NUMBER.search(text)
    if m:
        intensity = float(m.group(1) or m.group(2))
    else:
        for value, pattern in _INTENSITY_WORDS:
            if pattern.search(text):
                intensity = value
                break
    params = {"workout_intensity": min(intensity, 10.0)}
    for key, pattern in (("stress_level", _STRESS), ("hrv", _HRV), ("sleep_hours", _SLEEP)):
        m = pattern.search(text)
        if m:
            params[key] = float(m.group(1))
    return params


RECOVERY_RULE = IntentRule(
    "recovery", "recovery",
    re.compile(r"\b(recover|recovery|sore|soreness|doms|rest day|after (?:my|a|the) workout)\b"),
    tool="recovery_optimizer",
    extract=extract_recovery_params,
)


class RecoveryPlugin(CoachPlugin):
    plugin_id = PLUGIN_ID
    name = "Recovery Optimizer"
    version = "1.0.0"
    tools = [RECOVERY_TOOL]
    rules = [RECOVERY_RULE]

    async def execute(self, tool_name: str, params: dict):
        if tool_name != RECOVERY_TOOL.name:
            raise ValueError(f"Recovery plugin has no tool '{tool_name}'")
        return optimize_recovery(params)


def get_plugin() -> CoachPlugin:
    return RecoveryPlugin()
