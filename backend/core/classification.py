"""
Intent classification — maps a request onto an intent category, a tool and
its parameters.

Rules are tried in order and the first match wins. Matching is plain regex
over the lower-cased text, so classification is pure and deterministic:
the same text always produces the same IntentResult. No model call is
involved; anything the rules don't recognize is "general" and goes straight
to the reasoning providers.

Usage:
    from core.classification import classify
    intent = classify("generate a 45 minute strength workout with dumbbells")
    intent.tool    # "plan_workout"
    intent.params  # {"duration": 45, "goal": "strength", "equipment": ["dumbbells"]}
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from domain import IntentResult, RequestContext
from tools_fitness import EXERCISE_ALIASES, EXERCISE_LIBRARY, normalize_exercise

logger = logging.getLogger(__name__)

GENERAL = "general"


# ── Parameter extractors ──

_DURATION_MIN = re.compile(r"(\d{1,3})\s*-?\s*(?:min|mins|minute|minutes)\b")
_DURATION_HOUR = re.compile(r"(\d(?:\.\d+)?)\s*-?\s*(?:h|hr|hrs|hour|hours)\b")
_HALF_HOUR = re.compile(r"\bhalf(?: an)? hour\b")

_GOAL_KEYWORDS = [
    ("weight_loss", r"\b(fat loss|weight loss|lose weight|losing weight|burn fat|fat burning|hiit|lean out|cut)\b"),
    ("hypertrophy", r"\b(hypertrophy|muscle gain|build muscle|bulk|bulking|size|mass)\b"),
    ("strength", r"\b(strength|strong|stronger|power|powerlifting)\b"),
    ("endurance", r"\b(endurance|stamina|cardio|conditioning)\b"),
    ("mobility", r"\b(mobility|stretch|stretching|flexibility|yoga)\b"),
]

_EQUIPMENT_KEYWORDS = [
    ("dumbbells", r"\b(dumbbells?|dbs?)\b"),
    ("barbell", r"\bbarbells?\b"),
    ("kettlebell", r"\b(kettlebells?|kbs?)\b"),
    ("bench", r"\bbench(?!\s*press)\b"),
    ("pull_up_bar", r"\bpull[\s-]?up bar\b"),
    ("bodyweight", r"\b(bodyweight|body weight|no equipment|without equipment)\b"),
]

_LEVEL_KEYWORDS = [
    ("beginner", r"\b(beginner|new to|novice|just starting|starting out)\b"),
    ("advanced", r"\b(advanced|experienced|elite)\b"),
    ("intermediate", r"\bintermediate\b"),
]

_MUSCLE_KEYWORDS = [
    ("chest", r"\b(chest|pecs?)\b"),
    ("back", r"\b(back|lats?)\b"),
    ("shoulders", r"\b(shoulders?|delts?)\b"),
    ("biceps", r"\b(biceps?|arms?)\b"),
    ("triceps", r"\b(triceps?|arms?)\b"),
    ("quads", r"\b(quads?|quadriceps|legs?|thighs?)\b"),
    ("hamstrings", r"\b(hamstrings?|hammies|legs?)\b"),
    ("glutes", r"\b(glutes?|butt|legs?)\b"),
    ("core", r"\b(core|abs|abdominals?|obliques)\b"),
    ("calves", r"\b(calf|calves)\b"),
    ("full_body", r"\b(full[\s-]?body|whole body|total body)\b"),
]

_METRIC_KEYWORDS = [
    ("measurements", r"\b(waist|measurements?|inches|body fat|bodyfat)\b"),
    ("weight", r"\b(weigh|weight|bodyweight|pounds|lbs|kilos|kg|scale)\b"),
    ("endurance", r"\b(endurance|stamina|cardio|running|run|mile|5k|10k)\b"),
    ("strength", r"\b(strength|stronger|lifts?|pr|prs|1rm|max)\b"),
]

_TIMEFRAME_KEYWORDS = [
    ("3months", r"\b(3|three) months?\b|\bquarter\b"),
    ("year", r"\byear\b"),
    ("month", r"\bmonth\b"),
    ("week", r"\bweek\b"),
]

_RESTING_HR = re.compile(r"resting (?:heart rate|hr)\D{0,12}(\d{2,3})")
_HEART_RATE = re.compile(r"\b(?:heart rate|hr|pulse)\b\D{0,12}(\d{2,3})|(\d{2,3})\s*bpm")
_HRV = re.compile(r"\bhrv\D{0,12}(\d{1,3}(?:\.\d+)?)")
_SLEEP = re.compile(
    r"(?:slept|sleep)\D{0,15}(\d{1,2}(?:\.\d+)?)\s*(?:h|hrs?|hours?)\b"
    r"|(\d{1,2}(?:\.\d+)?)\s*(?:h|hrs?|hours?) (?:of )?sleep"
)
_AGE = re.compile(r"\b(?:i am|i'm|age)\s*(\d{2})\b|\b(\d{2})\s*(?:years? old|yo)\b")

_FOOD_PHRASE = re.compile(r"\b(?:ate|had|eating|eat|having|log|logged)\s+(.+)")


def _first_keyword(text: str, table: list[tuple[str, str]]) -> Optional[str]:
    for value, pattern in table:
        if re.search(pattern, text):
            return value
    return None


def _all_keywords(text: str, table: list[tuple[str, str]]) -> list[str]:
    return [value for value, pattern in table if re.search(pattern, text)]


def _exercise_pattern() -> re.Pattern:
    names = set(EXERCISE_LIBRARY) | set(EXERCISE_ALIASES)
    names |= {ex["display"].lower() for ex in EXERCISE_LIBRARY.values()}
    parts = []
    # longest first so "romanian deadlift" wins over "deadlift"
    for name in sorted(names, key=len, reverse=True):
        words = re.split(r"[\s_\-]+", name.replace("'", ""))
        parts.append(r"[\s_\-]?".join(re.escape(w) for w in words))
    return re.compile(r"\b(" + "|".join(parts) + r")\b")


_EXERCISE_NAMES = _exercise_pattern()


def find_exercise(text: str) -> Optional[str]:
    """First known exercise mentioned in the text, as a library key."""
    m = _EXERCISE_NAMES.search(text.replace("'", ""))
    return normalize_exercise(m.group(1)) if m else None


def extract_duration(text: str) -> Optional[int]:
    m = _DURATION_MIN.search(text)
    if m:
        return int(m.group(1))
    m = _DURATION_HOUR.search(text)
    if m:
        return int(round(float(m.group(1)) * 60))
    if _HALF_HOUR.search(text):
        return 30
    return None


def extract_plan_params(text: str) -> dict:
    params = {"goal": _first_keyword(text, _GOAL_KEYWORDS) or "general"}
    duration = extract_duration(text)
    if duration is not None:
        params["duration"] = duration
    equipment = _all_keywords(text, _EQUIPMENT_KEYWORDS)
    if equipment:
        params["equipment"] = equipment
    level = _first_keyword(text, _LEVEL_KEYWORDS)
    if level:
        params["fitness_level"] = level
    return params


def extract_exercise_params(text: str, key: str = "name") -> dict:
    exercise = find_exercise(text)
    return {key: exercise} if exercise else {}


def extract_nutrition_params(text: str) -> dict:
    m = _FOOD_PHRASE.search(text)
    return {"food": (m.group(1) if m else text).strip(" .?!")}


def extract_biometric_params(text: str) -> dict:
    params = {}
    remaining = text
    m = _RESTING_HR.search(text)
    if m:
        params["resting_heart_rate"] = int(m.group(1))
        remaining = text[:m.start()] + text[m.end():]
    m = _HEART_RATE.search(remaining)
    if m:
        params["heart_rate"] = int(m.group(1) or m.group(2))
    m = _HRV.search(text)
    if m:
        params["hrv"] = float(m.group(1))
    m = _SLEEP.search(text)
    if m:
        params["sleep_hours"] = float(m.group(1) or m.group(2))
    m = _AGE.search(text)
    if m:
        params["age"] = int(m.group(1) or m.group(2))
    return params


def extract_progress_params(text: str) -> dict:
    params = {"metric": _first_keyword(text, _METRIC_KEYWORDS) or "strength"}
    timeframe = _first_keyword(text, _TIMEFRAME_KEYWORDS)
    if timeframe:
        params["timeframe"] = timeframe
    return params


def extract_recommend_params(text: str) -> dict:
    params = {}
    groups = _all_keywords(text, _MUSCLE_KEYWORDS)
    if groups:
        params["muscle_groups"] = groups
    equipment = _all_keywords(text, _EQUIPMENT_KEYWORDS)
    if equipment:
        params["equipment"] = equipment
    level = _first_keyword(text, _LEVEL_KEYWORDS)
    if level:
        params["difficulty"] = level
    return params


# ── Rules ──

@dataclass(frozen=True)
class IntentRule:
    name: str
    category: str
    pattern: re.Pattern
    tool: Optional[str] = None
    extract: Optional[Callable[[str], dict]] = field(default=None, compare=False)

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(name, category, pattern, tool=None, extract=None) -> IntentRule:
    return IntentRule(name, category, re.compile(pattern), tool, extract)


DEFAULT_RULES = [
    _rule("motivation", "motivation",
          r"\b(motivat\w*|inspir\w*|encourag\w*|pump me up|give up|giving up|"
          r"quit|quitting|lazy|can't do this|cannot do this|feel like skipping)\b"),
    _rule("planning", "planning",
          r"\b(generate|create|make|build|design|plan|give me|need|want|suggest)\b.*"
          r"\b(workout|routine|program|programme|session|training plan)\b"
          r"|\bworkout plan\b|\b\d+\s*-?\s*min(?:ute)?s?\b.*\bworkout\b",
          tool="plan_workout", extract=extract_plan_params),
    _rule("form", "form",
          r"\b(form|technique|posture|am i doing (?:it|this) right|check my)\b",
          tool="analyze_form",
          extract=lambda t: extract_exercise_params(t, key="exercise")),
    _rule("nutrition", "nutrition",
          r"\b(eat|ate|eating|meal|food|calories?|macros?|protein|carbs?|diet|nutrition|"
          r"breakfast|lunch|dinner|snack)\b",
          tool="analyze_nutrition", extract=extract_nutrition_params),
    _rule("biometrics", "biometrics",
          r"\b(heart rate|bpm|hrv|resting hr|pulse|slept|sleep|readiness|recovered)\b",
          tool="analyze_biometrics", extract=extract_biometric_params),
    _rule("progress", "progress",
          r"\b(progress|progressing|improv\w*|track\w*|gains|trend|plateau\w*|getting stronger)\b",
          tool="track_progress", extract=extract_progress_params),
    _rule("recommend", "exercise",
          r"\b(recommend|suggest|what exercises|which exercises|alternatives?|exercises for)\b",
          tool="recommend_exercises", extract=extract_recommend_params),
    IntentRule("exercise", "exercise", _EXERCISE_NAMES, tool="lookup_exercise",
               extract=extract_exercise_params),
]


class IntentClassifier:
    """Ordered rule list; first match wins. Rules are injectable."""

    def __init__(self, rules: Optional[list[IntentRule]] = None):
        self.rules = list(DEFAULT_RULES if rules is None else rules)

    def add_rule(self, rule: IntentRule, before: Optional[str] = None):
        """Append a rule, or insert it ahead of the rule named `before`."""
        if before is not None:
            for i, existing in enumerate(self.rules):
                if existing.name == before:
                    self.rules.insert(i, rule)
                    return
        self.rules.append(rule)

    def classify(self, text: str) -> IntentResult:
        normalized = (text or "").lower().strip()
        if not normalized:
            return IntentResult(GENERAL)
        for rule in self.rules:
            if not rule.matches(normalized):
                continue
            params = rule.extract(normalized) if rule.extract else {}
            logger.debug("Intent %s (rule=%s, tool=%s)", rule.category, rule.name, rule.tool)
            return IntentResult(rule.category, rule.tool, params, rule.name)
        return IntentResult(GENERAL)

    def classify_request(self, request: RequestContext) -> IntentResult:
        """Classify text, falling back to the media rules for photo-only requests."""
        result = self.classify(request.text or "")
        if not request.has_media or result.category != GENERAL:
            return result

        current = request.domain_state.get("current_exercise")
        if current:
            params = {"exercise": normalize_exercise(str(current)) or str(current)}
            return IntentResult("form", "analyze_form", params, "media_form")
        food = {"food": request.text.strip()} if request.text and request.text.strip() else {}
        return IntentResult("nutrition", "analyze_nutrition", food, "media_nutrition")


_default = IntentClassifier()


def classify(text: str) -> IntentResult:
    return _default.classify(text)


def classify_request(request: RequestContext) -> IntentResult:
    return _default.classify_request(request)
