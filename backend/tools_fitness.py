"""
Fitness Tools — deterministic, offline handlers behind the coach's tools.

Every handler takes the validated params dict and returns plain data (the
registry wraps it in a ToolResult). Each data dict carries a "summary" string
the router uses as the user-facing answer. Handlers raise ValueError when
they cannot give a meaningful answer; the registry turns that into a failed
ToolResult and the router falls through to the reasoning providers.

None of these handlers touch shared state: re-running one with the same
params yields the same data.
"""

import re
from typing import Callable, Optional

from domain import ParamSpec, ToolDescriptor

LEVELS = ("beginner", "intermediate", "advanced")
GOALS = ("strength", "hypertrophy", "endurance", "weight_loss", "mobility", "general")
PHASES = ("warmup", "working", "rest", "cooldown")
METRICS = ("strength", "endurance", "weight", "measurements")
TIMEFRAMES = ("week", "month", "3months", "year")
MUSCLE_GROUPS = (
    "chest", "back", "shoulders", "biceps", "triceps", "quads",
    "hamstrings", "glutes", "core", "calves", "full_body",
)

# ── Exercise Library ──

EXERCISE_LIBRARY = {
    "squats": {
        "display": "Back Squat",
        "category": "strength",
        "muscles": ["quads", "glutes", "hamstrings", "core"],
        "equipment": ["barbell"],
        "difficulty": "intermediate",
        "cues": ["Brace your core before you descend",
                 "Push your knees out over your toes",
                 "Hit at least parallel, then drive up through mid-foot"],
        "mistakes": ["Knees caving inward", "Heels lifting", "Rounding the lower back"],
        "variations": ["goblet_squat", "split_squat"],
    },
    "goblet_squat": {
        "display": "Goblet Squat",
        "category": "strength",
        "muscles": ["quads", "glutes", "core"],
        "equipment": ["dumbbells"],
        "difficulty": "beginner",
        "cues": ["Hold the dumbbell at chest height",
                 "Keep elbows inside your knees at the bottom",
                 "Stay tall through the chest"],
        "mistakes": ["Leaning forward", "Cutting depth short"],
        "variations": ["squats", "split_squat"],
    },
    "split_squat": {
        "display": "Split Squat",
        "category": "strength",
        "muscles": ["quads", "glutes"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Long stance, front shin close to vertical",
                 "Drop the back knee straight down",
                 "Drive through the front heel"],
        "mistakes": ["Stance too short", "Front knee collapsing inward"],
        "variations": ["lunges", "goblet_squat"],
    },
    "lunges": {
        "display": "Walking Lunge",
        "category": "strength",
        "muscles": ["quads", "glutes", "hamstrings"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Step long enough that both knees reach 90 degrees",
                 "Keep your torso upright",
                 "Control the back knee to just above the floor"],
        "mistakes": ["Front heel lifting", "Torso pitching forward"],
        "variations": ["split_squat"],
    },
    "deadlift": {
        "display": "Deadlift",
        "category": "strength",
        "muscles": ["hamstrings", "glutes", "back", "core"],
        "equipment": ["barbell"],
        "difficulty": "advanced",
        "cues": ["Bar over mid-foot, shins close to the bar",
                 "Pull the slack out of the bar before lifting",
                 "Push the floor away and lock out with your glutes"],
        "mistakes": ["Rounding the back", "Bar drifting away from the legs",
                     "Hyperextending at lockout"],
        "variations": ["romanian_deadlift"],
    },
    "romanian_deadlift": {
        "display": "Romanian Deadlift",
        "category": "strength",
        "muscles": ["hamstrings", "glutes", "back"],
        "equipment": ["dumbbells"],
        "difficulty": "intermediate",
        "cues": ["Soft knees, hinge at the hips",
                 "Keep the weights close to your legs",
                 "Stop when your hamstrings are fully stretched"],
        "mistakes": ["Squatting the weight down", "Rounding the upper back"],
        "variations": ["deadlift", "glute_bridge"],
    },
    "glute_bridge": {
        "display": "Glute Bridge",
        "category": "strength",
        "muscles": ["glutes", "hamstrings", "core"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Feet flat, hip-width apart",
                 "Squeeze your glutes to lift the hips",
                 "Pause at the top without arching your lower back"],
        "mistakes": ["Pushing through the toes", "Overarching at the top"],
        "variations": ["romanian_deadlift"],
    },
    "bench_press": {
        "display": "Bench Press",
        "category": "strength",
        "muscles": ["chest", "triceps", "shoulders"],
        "equipment": ["barbell", "bench"],
        "difficulty": "intermediate",
        "cues": ["Retract your shoulder blades and keep them pinned",
                 "Lower the bar to mid-chest with elbows around 45 degrees",
                 "Keep your feet planted and drive through the floor"],
        "mistakes": ["Flaring elbows to 90 degrees", "Bouncing the bar off the chest",
                     "Lifting the hips off the bench"],
        "variations": ["dumbbell_bench_press", "push_ups"],
    },
    "dumbbell_bench_press": {
        "display": "Dumbbell Bench Press",
        "category": "strength",
        "muscles": ["chest", "triceps", "shoulders"],
        "equipment": ["dumbbells", "bench"],
        "difficulty": "beginner",
        "cues": ["Start with the dumbbells over your shoulders",
                 "Lower under control to chest level",
                 "Press up and slightly in"],
        "mistakes": ["Dropping the weights too low", "Uneven pressing"],
        "variations": ["bench_press", "push_ups"],
    },
    "push_ups": {
        "display": "Push-Up",
        "category": "strength",
        "muscles": ["chest", "triceps", "shoulders", "core"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Hands just wider than shoulders",
                 "Keep a straight line from head to heels",
                 "Lower your chest all the way to the floor"],
        "mistakes": ["Sagging hips", "Half reps", "Head dropping forward"],
        "variations": ["dumbbell_bench_press"],
    },
    "overhead_press": {
        "display": "Overhead Press",
        "category": "strength",
        "muscles": ["shoulders", "triceps", "core"],
        "equipment": ["dumbbells"],
        "difficulty": "intermediate",
        "cues": ["Squeeze glutes and brace before pressing",
                 "Press straight up, finishing with biceps by your ears",
                 "Avoid leaning back"],
        "mistakes": ["Overarching the lower back", "Pressing forward instead of up"],
        "variations": ["push_ups"],
    },
    "dumbbell_row": {
        "display": "One-Arm Dumbbell Row",
        "category": "strength",
        "muscles": ["back", "biceps"],
        "equipment": ["dumbbells"],
        "difficulty": "beginner",
        "cues": ["Flat back, supported by the free hand",
                 "Pull the elbow toward your hip",
                 "Lower slowly to a full stretch"],
        "mistakes": ["Twisting the torso", "Shrugging the shoulder"],
        "variations": ["pull_ups"],
    },
    "pull_ups": {
        "display": "Pull-Up",
        "category": "strength",
        "muscles": ["back", "biceps", "core"],
        "equipment": ["pull_up_bar"],
        "difficulty": "advanced",
        "cues": ["Start from a dead hang",
                 "Drive your elbows down toward your ribs",
                 "Bring your chin over the bar without kipping"],
        "mistakes": ["Partial range of motion", "Swinging"],
        "variations": ["dumbbell_row"],
    },
    "bicep_curl": {
        "display": "Dumbbell Curl",
        "category": "strength",
        "muscles": ["biceps"],
        "equipment": ["dumbbells"],
        "difficulty": "beginner",
        "cues": ["Pin your elbows to your sides",
                 "Curl without swinging",
                 "Lower slowly"],
        "mistakes": ["Using momentum", "Elbows drifting forward"],
        "variations": [],
    },
    "plank": {
        "display": "Plank",
        "category": "core",
        "muscles": ["core", "shoulders"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Elbows under shoulders",
                 "Squeeze glutes and brace your abs",
                 "Keep your neck neutral"],
        "mistakes": ["Hips sagging", "Hips piked too high"],
        "variations": ["mountain_climbers"],
    },
    "mountain_climbers": {
        "display": "Mountain Climbers",
        "category": "cardio",
        "muscles": ["core", "shoulders", "full_body"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Hold a strong plank position",
                 "Drive the knees toward the chest",
                 "Keep the hips level"],
        "mistakes": ["Bouncing the hips", "Hands drifting behind the shoulders"],
        "variations": ["burpees", "plank"],
    },
    "burpees": {
        "display": "Burpees",
        "category": "cardio",
        "muscles": ["full_body", "chest", "quads"],
        "equipment": ["bodyweight"],
        "difficulty": "intermediate",
        "cues": ["Land softly from the jump",
                 "Keep your core tight in the plank",
                 "Move at a pace you can sustain"],
        "mistakes": ["Collapsing in the push-up", "Landing with locked knees"],
        "variations": ["mountain_climbers"],
    },
    "jumping_jacks": {
        "display": "Jumping Jacks",
        "category": "cardio",
        "muscles": ["full_body", "calves"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Stay light on the balls of your feet",
                 "Keep a steady rhythm"],
        "mistakes": ["Landing flat-footed"],
        "variations": ["burpees"],
    },
    "kettlebell_swing": {
        "display": "Kettlebell Swing",
        "category": "cardio",
        "muscles": ["glutes", "hamstrings", "core", "full_body"],
        "equipment": ["kettlebell"],
        "difficulty": "intermediate",
        "cues": ["Hinge, don't squat",
                 "Snap the hips to float the bell",
                 "Let the bell fall back between the legs"],
        "mistakes": ["Lifting with the arms", "Squatting the swing"],
        "variations": ["romanian_deadlift"],
    },
    "hip_flexor_stretch": {
        "display": "Half-Kneeling Hip Flexor Stretch",
        "category": "mobility",
        "muscles": ["quads", "glutes"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Tuck the pelvis under", "Shift forward gently", "Breathe slowly"],
        "mistakes": ["Arching the lower back"],
        "variations": [],
    },
    "cat_cow": {
        "display": "Cat-Cow",
        "category": "mobility",
        "muscles": ["back", "core"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Move one vertebra at a time", "Sync the movement with your breath"],
        "mistakes": ["Rushing the movement"],
        "variations": [],
    },
    "worlds_greatest_stretch": {
        "display": "World's Greatest Stretch",
        "category": "mobility",
        "muscles": ["full_body", "hamstrings", "glutes"],
        "equipment": ["bodyweight"],
        "difficulty": "beginner",
        "cues": ["Long lunge, hand inside the front foot", "Rotate the chest open to the sky"],
        "mistakes": ["Letting the back knee collapse"],
        "variations": [],
    },
}

EXERCISE_ALIASES = {
    "squat": "squats",
    "back_squat": "squats",
    "goblet_squats": "goblet_squat",
    "bench": "bench_press",
    "bench_presses": "bench_press",
    "deadlifts": "deadlift",
    "rdl": "romanian_deadlift",
    "rdls": "romanian_deadlift",
    "pushup": "push_ups",
    "pushups": "push_ups",
    "push_up": "push_ups",
    "pullup": "pull_ups",
    "pullups": "pull_ups",
    "pull_up": "pull_ups",
    "chin_ups": "pull_ups",
    "lunge": "lunges",
    "planks": "plank",
    "row": "dumbbell_row",
    "rows": "dumbbell_row",
    "shoulder_press": "overhead_press",
    "military_press": "overhead_press",
    "curl": "bicep_curl",
    "curls": "bicep_curl",
    "bicep_curls": "bicep_curl",
    "burpee": "burpees",
    "kettlebell_swings": "kettlebell_swing",
    "swings": "kettlebell_swing",
    "glute_bridges": "glute_bridge",
    "hip_thrust": "glute_bridge",
}

EQUIPMENT_ALIASES = {
    "dumbbell": "dumbbells",
    "db": "dumbbells",
    "dbs": "dumbbells",
    "barbells": "barbell",
    "kettlebells": "kettlebell",
    "kb": "kettlebell",
    "pull-up bar": "pull_up_bar",
    "pullup bar": "pull_up_bar",
    "pull up bar": "pull_up_bar",
    "benches": "bench",
    "none": "bodyweight",
    "no equipment": "bodyweight",
}


def normalize_exercise(name: str) -> Optional[str]:
    """Map free text like 'Bench Press' or 'pushups' to a library key."""
    if not name:
        return None
    key = re.sub(r"[\s\-]+", "_", name.strip().lower()).replace("'", "")
    if key in EXERCISE_LIBRARY:
        return key
    return EXERCISE_ALIASES.get(key)


def normalize_equipment(items) -> list[str]:
    result = []
    for item in items or []:
        key = str(item).strip().lower()
        key = EQUIPMENT_ALIASES.get(key, key.replace(" ", "_"))
        if key and key not in result:
            result.append(key)
    return result


def _level_rank(level: str) -> int:
    return LEVELS.index(level) if level in LEVELS else 1


def _fits(exercise: dict, equipment: set[str], level: str) -> bool:
    if _level_rank(exercise["difficulty"]) > _level_rank(level):
        return False
    return all(e in equipment for e in exercise["equipment"] if e != "bodyweight")


# ── plan_workout ──

# goal -> (sets, reps, rest seconds, categories in preference order)
_GOAL_PRESCRIPTIONS = {
    "strength": (4, "5", 150, ("strength",)),
    "hypertrophy": (3, "10", 90, ("strength",)),
    "endurance": (3, "15", 45, ("strength", "cardio", "core")),
    "weight_loss": (3, "12", 30, ("cardio", "strength", "core")),
    "mobility": (2, "10", 30, ("mobility", "core")),
    "general": (3, "10", 60, ("strength", "core", "cardio")),
}

WARMUP_MINUTES = 5
COOLDOWN_MINUTES = 5


def _select_for_plan(categories: tuple, equipment: set[str], level: str) -> list[str]:
    chosen = []
    covered = set()
    for category in categories:
        for key, ex in EXERCISE_LIBRARY.items():
            if ex["category"] != category or key in chosen or not _fits(ex, equipment, level):
                continue
            # spread the session across muscle groups before doubling up
            if ex["muscles"][0] in covered:
                continue
            chosen.append(key)
            covered.add(ex["muscles"][0])
    return chosen


def plan_workout(params: dict) -> dict:
    goal = params["goal"]
    duration = int(params["duration"])
    level = params.get("fitness_level", "intermediate")
    equipment = normalize_equipment(params.get("equipment"))

    if duration < 10 or duration > 180:
        raise ValueError("duration must be between 10 and 180 minutes")

    sets, reps, rest, categories = _GOAL_PRESCRIPTIONS[goal]
    available = set(equipment) | {"bodyweight"}
    candidates = _select_for_plan(categories, available, level)
    if not candidates:
        raise ValueError(f"No exercises available for goal '{goal}' with {sorted(available)}")

    warmup = WARMUP_MINUTES if duration >= 20 else 0
    cooldown = COOLDOWN_MINUTES if duration >= 20 else 0
    main_minutes = duration - warmup - cooldown
    # roughly 45 seconds of work per set plus the prescribed rest
    per_exercise = sets * (0.75 + rest / 60.0)
    count = max(1, min(len(candidates), 8, int(main_minutes // per_exercise)))

    exercises = []
    for key in candidates[:count]:
        ex = EXERCISE_LIBRARY[key]
        exercises.append({
            "exercise": key,
            "name": ex["display"],
            "sets": sets,
            "reps": reps,
            "rest_seconds": rest,
            "muscles": list(ex["muscles"]),
        })

    estimated = warmup + cooldown + round(per_exercise * len(exercises))
    lines = [f"{duration}-minute {goal.replace('_', ' ')} workout ({level})"]
    if warmup:
        lines.append(f"Warm-up: {warmup} min easy cardio and dynamic stretching")
    for i, e in enumerate(exercises, 1):
        lines.append(f"{i}. {e['name']}: {e['sets']} x {e['reps']}, rest {e['rest_seconds']}s")
    if cooldown:
        lines.append(f"Cool-down: {cooldown} min stretching")

    return {
        "goal": goal,
        "duration_minutes": duration,
        "fitness_level": level,
        "equipment": sorted(available),
        "warmup_minutes": warmup,
        "exercises": exercises,
        "cooldown_minutes": cooldown,
        "estimated_minutes": estimated,
        "summary": "\n".join(lines),
    }


# ── lookup_exercise ──

def lookup_exercise(params: dict) -> dict:
    key = normalize_exercise(params["name"])
    if key is None:
        raise ValueError(f"Unknown exercise: {params['name']}")
    ex = EXERCISE_LIBRARY[key]
    variations = [EXERCISE_LIBRARY[v]["display"] for v in ex["variations"] if v in EXERCISE_LIBRARY]
    summary = (
        f"{ex['display']} works {', '.join(ex['muscles'])}. "
        f"Key cues: {'; '.join(ex['cues'])}."
    )
    if variations:
        summary += f" Variations: {', '.join(variations)}."
    return {
        "exercise": key,
        "name": ex["display"],
        "category": ex["category"],
        "muscles": list(ex["muscles"]),
        "equipment": list(ex["equipment"]),
        "difficulty": ex["difficulty"],
        "cues": list(ex["cues"]),
        "common_mistakes": list(ex["mistakes"]),
        "variations": variations,
        "summary": summary,
    }


# ── recommend_exercises ──

MAX_RECOMMENDATIONS = 5


def recommend_exercises(params: dict) -> dict:
    groups = list(params["muscle_groups"])
    level = params.get("difficulty", "intermediate")
    available = set(normalize_equipment(params.get("equipment"))) | {"bodyweight"}

    scored = []
    for key, ex in EXERCISE_LIBRARY.items():
        if ex["category"] == "mobility" or not _fits(ex, available, level):
            continue
        overlap = len(set(groups) & set(ex["muscles"]))
        if overlap:
            scored.append((-overlap, key))
    scored.sort()
    picks = [key for _, key in scored[:MAX_RECOMMENDATIONS]]
    if not picks:
        raise ValueError(f"No exercises match {groups} with {sorted(available)}")

    recommendations = [
        {"exercise": k, "name": EXERCISE_LIBRARY[k]["display"],
         "muscles": list(EXERCISE_LIBRARY[k]["muscles"]),
         "difficulty": EXERCISE_LIBRARY[k]["difficulty"]}
        for k in picks
    ]
    names = ", ".join(r["name"] for r in recommendations)
    return {
        "muscle_groups": groups,
        "difficulty": level,
        "recommendations": recommendations,
        "summary": f"For {', '.join(groups)} try: {names}.",
    }


# ── analyze_form ──

def analyze_form(params: dict) -> dict:
    key = normalize_exercise(params["exercise"])
    if key is None:
        raise ValueError(f"No form guide for: {params['exercise']}")
    ex = EXERCISE_LIBRARY[key]
    has_media = params.get("media") is not None
    summary = (
        f"{ex['display']} form checklist: {'; '.join(ex['cues'])}. "
        f"Watch out for: {', '.join(ex['mistakes']).lower()}."
    )
    return {
        "exercise": key,
        "checkpoints": list(ex["cues"]),
        "common_mistakes": list(ex["mistakes"]),
        "media_received": has_media,
        "summary": summary,
    }


# ── analyze_nutrition ──

# per serving: calories, protein g, carbs g, fat g
FOOD_TABLE = {
    "chicken": (165, 31, 0, 4),
    "salmon": (208, 22, 0, 13),
    "steak": (271, 26, 0, 18),
    "egg": (78, 6, 1, 5),
    "tofu": (144, 17, 3, 9),
    "rice": (205, 4, 45, 0),
    "pasta": (220, 8, 43, 1),
    "bread": (80, 3, 15, 1),
    "oatmeal": (150, 5, 27, 3),
    "oats": (150, 5, 27, 3),
    "potato": (160, 4, 37, 0),
    "sweet potato": (112, 2, 26, 0),
    "banana": (105, 1, 27, 0),
    "apple": (95, 0, 25, 0),
    "broccoli": (55, 4, 11, 1),
    "salad": (35, 2, 7, 0),
    "avocado": (240, 3, 13, 22),
    "greek yogurt": (100, 17, 6, 1),
    "yogurt": (150, 8, 17, 4),
    "almonds": (164, 6, 6, 14),
    "peanut butter": (190, 8, 7, 16),
    "protein shake": (120, 24, 3, 2),
    "milk": (103, 8, 12, 2),
    "cheese": (113, 7, 0, 9),
    "pizza": (285, 12, 36, 10),
    "burger": (354, 20, 29, 17),
}

_QUANTITY = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(?:x\s*)?")
_FOOD_SPLIT = re.compile(r",|\band\b|\bwith\b|\+|;")


def _match_food(part: str) -> Optional[str]:
    # longest name first so "sweet potato" wins over "potato"
    for name in sorted(FOOD_TABLE, key=len, reverse=True):
        if re.search(rf"\b{re.escape(name)}(e?s)?\b", part):
            return name
    return None


def analyze_nutrition(params: dict) -> dict:
    food = (params.get("food") or "").strip().lower()
    if not food:
        if params.get("media") is not None:
            raise ValueError("Meal photos need a vision-capable provider")
        raise ValueError("Describe the meal to analyze")

    totals = {"calories": 0, "protein": 0, "carbs": 0, "fat": 0}
    items, unrecognized = [], []
    for part in _FOOD_SPLIT.split(food):
        part = part.strip()
        if not part:
            continue
        name = _match_food(part)
        if name is None:
            unrecognized.append(part)
            continue
        m = _QUANTITY.match(part)
        qty = float(m.group(1)) if m else 1.0
        cal, pro, carb, fat = FOOD_TABLE[name]
        items.append({"food": name, "servings": qty})
        for k, v in zip(("calories", "protein", "carbs", "fat"), (cal, pro, carb, fat)):
            totals[k] += v * qty

    if not items:
        raise ValueError(f"No recognizable foods in: {food}")

    totals = {k: round(v) for k, v in totals.items()}
    suggestions = []
    if totals["protein"] < 20:
        suggestions.append("Add a lean protein source")
    elif totals["protein"] >= 30:
        suggestions.append("Good protein content")
    if totals["carbs"] > 90:
        suggestions.append("Consider a smaller carb portion unless you are training soon")
    if totals["fat"] > 35:
        suggestions.append("This meal is fairly high in fat")
    if not any(i["food"] in ("broccoli", "salad", "apple", "banana") for i in items):
        suggestions.append("Add vegetables or fruit for fiber")

    summary = (
        f"About {totals['calories']} kcal: {totals['protein']}g protein, "
        f"{totals['carbs']}g carbs, {totals['fat']}g fat."
    )
    if suggestions:
        summary += " " + ". ".join(suggestions) + "."
    return {
        **totals,
        "items": items,
        "unrecognized": unrecognized,
        "suggestions": suggestions,
        "summary": summary,
    }


# ── analyze_biometrics ──

def _hr_zone(heart_rate: int, max_hr: int) -> str:
    pct = heart_rate / max_hr
    if pct < 0.6:
        return "recovery"
    if pct < 0.7:
        return "aerobic"
    if pct < 0.8:
        return "tempo"
    if pct < 0.9:
        return "threshold"
    return "max"


def analyze_biometrics(params: dict) -> dict:
    hr = params.get("heart_rate")
    resting = params.get("resting_heart_rate")
    hrv = params.get("hrv")
    sleep = params.get("sleep_hours")
    age = params.get("age")
    if all(v is None for v in (hr, resting, hrv, sleep)):
        raise ValueError("No biometric readings provided")

    readiness = 100
    notes = []
    if resting is not None and resting > 75:
        readiness -= 15
        notes.append("resting heart rate is elevated")
    if hrv is not None:
        if hrv < 30:
            readiness -= 20
            notes.append("HRV is low")
        elif hrv < 50:
            readiness -= 10
    if sleep is not None:
        if sleep < 6:
            readiness -= 25
            notes.append("you slept under 6 hours")
        elif sleep < 7:
            readiness -= 10
    readiness = max(0, readiness)

    if readiness >= 80:
        recommendation = "You're well recovered. Go ahead with a hard session."
    elif readiness >= 60:
        recommendation = "Train as planned but keep an eye on effort."
    else:
        recommendation = "Prioritize recovery today: light cardio or mobility work."

    data = {"readiness": readiness, "notes": notes, "recommendation": recommendation}
    summary = f"Readiness {readiness}/100. {recommendation}"
    if hr is not None:
        max_hr = 220 - int(age) if age else 190
        zone = _hr_zone(int(hr), max_hr)
        data["heart_rate_zone"] = zone
        summary = f"Heart rate {hr} bpm is in the {zone} zone. " + summary
    if notes:
        summary += f" Note: {', '.join(notes)}."
    data["summary"] = summary
    return data


# ── track_progress ──

def track_progress(params: dict) -> dict:
    metric = params["metric"]
    timeframe = params.get("timeframe", "month")
    points = [float(p) for p in params.get("data_points") or []]
    if len(points) < 2:
        raise ValueError(f"Not enough {metric} data recorded to show a trend")

    first, last = points[0], points[-1]
    change = last - first
    pct = round(change / first * 100, 1) if first else 0.0
    if abs(pct) < 1:
        trend = "steady"
    elif metric == "weight":
        trend = "up" if change > 0 else "down"
    else:
        trend = "improving" if change > 0 else "declining"

    summary = (
        f"Your {metric} over the last {timeframe.replace('3months', '3 months')} "
        f"went from {first:g} to {last:g} ({pct:+g}%), trend: {trend}."
    )
    return {
        "metric": metric,
        "timeframe": timeframe,
        "start": first,
        "latest": last,
        "best": max(points),
        "change": round(change, 2),
        "change_percent": pct,
        "trend": trend,
        "sessions": len(points),
        "summary": summary,
    }


# ── voice_coach ──

_PHASE_CUES = {
    "warmup": ["Start with light weight to warm up your muscles",
               "Focus on full range of motion"],
    "working": ["Maintain proper form throughout the movement",
                "Control the weight on both the lift and the lowering"],
    "rest": ["Take deep breaths to recover", "Stay hydrated"],
    "cooldown": ["Slow down the pace", "Focus on stretching the worked muscles"],
}

_ENCOURAGEMENT = {
    "warmup": "Great start! Let's prepare your body for an amazing workout.",
    "working": "You're doing fantastic! Keep pushing, you've got this!",
    "rest": "Good job! Use this time to recover and prepare for the next set.",
    "cooldown": "Excellent work today! Let's cool down properly.",
}


def next_phase(phase: str) -> str:
    idx = PHASES.index(phase)
    return PHASES[idx + 1] if idx + 1 < len(PHASES) else "complete"


def voice_coach(params: dict) -> dict:
    phase = params["phase"]
    cues = list(_PHASE_CUES[phase])
    key = normalize_exercise(params["exercise"])
    if key and phase == "working":
        cues.insert(0, EXERCISE_LIBRARY[key]["cues"][0])
    encouragement = _ENCOURAGEMENT[phase]
    return {
        "exercise": key or params["exercise"],
        "phase": phase,
        "cues": cues,
        "encouragement": encouragement,
        "next_phase": next_phase(phase),
        "summary": f"{encouragement} {' '.join(c + '.' for c in cues)}",
    }


# ── Registration ──

def get_fitness_tools() -> list[tuple[ToolDescriptor, Callable]]:
    return [
        (ToolDescriptor(
            name="plan_workout",
            description="Build a timed workout for a goal, duration and available equipment",
            parameters={
                "goal": ParamSpec("string", required=True, enum=GOALS),
                "duration": ParamSpec("integer", required=True, description="Minutes"),
                "equipment": ParamSpec("array", description="Available equipment"),
                "fitness_level": ParamSpec("string", enum=LEVELS),
            }), plan_workout),
        (ToolDescriptor(
            name="lookup_exercise",
            description="Muscles, cues, mistakes and variations for an exercise",
            parameters={
                "name": ParamSpec("string", required=True),
            }), lookup_exercise),
        (ToolDescriptor(
            name="recommend_exercises",
            description="Recommend exercises for target muscle groups",
            parameters={
                "muscle_groups": ParamSpec("array", required=True, enum=MUSCLE_GROUPS),
                "equipment": ParamSpec("array"),
                "difficulty": ParamSpec("string", enum=LEVELS),
            }), recommend_exercises),
        (ToolDescriptor(
            name="analyze_form",
            description="Form checkpoints and common mistakes for an exercise",
            parameters={
                "exercise": ParamSpec("string", required=True),
                "media": ParamSpec("binary", description="Photo or video frame"),
            }), analyze_form),
        (ToolDescriptor(
            name="analyze_nutrition",
            description="Estimate calories and macros for a described meal",
            parameters={
                "food": ParamSpec("string", description="Meal description"),
                "media": ParamSpec("binary", description="Meal photo"),
            }), analyze_nutrition),
        (ToolDescriptor(
            name="analyze_biometrics",
            description="Readiness and heart-rate zone from biometric readings",
            parameters={
                "heart_rate": ParamSpec("integer"),
                "resting_heart_rate": ParamSpec("integer"),
                "hrv": ParamSpec("number"),
                "sleep_hours": ParamSpec("number"),
                "age": ParamSpec("integer"),
            }), analyze_biometrics),
        (ToolDescriptor(
            name="track_progress",
            description="Trend for a tracked metric over a timeframe",
            parameters={
                "metric": ParamSpec("string", required=True, enum=METRICS),
                "timeframe": ParamSpec("string", enum=TIMEFRAMES),
                "data_points": ParamSpec("array", description="Chronological values"),
            }), track_progress),
        (ToolDescriptor(
            name="voice_coach",
            description="Spoken coaching cues for the current workout phase",
            parameters={
                "exercise": ParamSpec("string", required=True),
                "phase": ParamSpec("string", required=True, enum=PHASES),
            }), voice_coach),
    ]
