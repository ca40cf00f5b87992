"""
FallbackResponder — offline, rule-based answers when every provider fails.

The choice of template is a stable hash of the request text, so the same
request always gets the same answer. When the request's domain state names
a current exercise with a known tip, the tip is appended.
"""

import logging
import zlib
from typing import Optional

import config
from domain import FALLBACK_PROVIDER, ProviderMetadata, RequestContext, Response
from tools_fitness import normalize_exercise

logger = logging.getLogger(__name__)

DEFAULT_REASON = "AI service temporarily unavailable"

FALLBACK_TEMPLATES = {
    "motivation": [
        "Great job showing up today! Every workout counts towards your goals.",
        "You're doing amazing! Keep pushing forward, one rep at a time.",
        "Remember why you started. You've got this!",
        "Your dedication is inspiring. Let's make today count!",
        "Progress happens one workout at a time. You're on the right track!",
    ],
    "planning": [
        "Here's a balanced workout: 5 minutes of warm-up, then 3 sets of 10 squats, "
        "3 sets of 10 push-ups, 3 sets of 20-second planks, and 5 minutes of stretching.",
        "Try this full-body routine: 3 rounds of 15 jumping jacks, 10 burpees, "
        "15 mountain climbers and 20 high knees. Rest 1 minute between rounds.",
        "Focus on compound movements today: deadlifts (3x8), bench press (3x10), "
        "rows (3x10) and overhead press (3x8). Rest 2 minutes between sets.",
    ],
    "form": [
        "Keep your core engaged throughout the movement. Focus on controlled, "
        "steady motions rather than speed.",
        "Maintain proper alignment: back straight, shoulders back, and breathe "
        "steadily throughout the exercise.",
        "Start with a lighter weight to perfect your technique. Quality over quantity always wins!",
    ],
    "exercise": [
        "This exercise targets multiple muscle groups. Focus on proper form to "
        "maximize the benefit and prevent injury.",
        "Pick a weight that lets you complete every rep with good form, and "
        "increase it as you get stronger.",
        "This movement builds functional strength that carries over to daily "
        "life. Take your time to learn it properly.",
    ],
    "nutrition": [
        "Fuel your workouts with a balanced diet: protein, complex carbs and healthy fats in every meal.",
        "Post-workout tip: have a protein source within a couple of hours of training to support recovery.",
        "Stay consistent with your nutrition. Small, sustainable changes lead to long-term results.",
    ],
    "biometrics": [
        "Listen to your body: if your resting heart rate is elevated or you slept "
        "poorly, keep today's session light.",
        "Recovery shows up in your numbers. Prioritize sleep and hydration before "
        "pushing intensity.",
    ],
    "progress": [
        "You're making progress! Keep tracking your workouts to see how far you've come.",
        "Every workout is a step forward. Celebrate the small wins along your fitness journey.",
        "Compare yourself to who you were yesterday, not to others. Your progress is unique to you.",
    ],
    "general": [
        "Consistency is key to reaching your fitness goals. Aim for 3-4 workouts per week.",
        "Don't forget to stay hydrated! Drink water before, during and after your workout.",
        "Recovery is just as important as training. Make sure you're getting enough sleep and rest days.",
    ],
}

EXERCISE_TIPS = {
    "squats": [
        "For squats: feet shoulder-width apart, chest up, drive through your heels.",
        "Squat tip: imagine sitting back into a chair and keep your knees tracking over your toes.",
        "Aim for thighs parallel to the ground if your mobility allows.",
    ],
    "bench_press": [
        "Bench press: feet flat on the floor, slight arch in your back, grip the bar evenly.",
        "Control the bar on the way down, touch your chest, then drive up powerfully.",
        "Keep your shoulder blades pulled back and down throughout the press.",
    ],
    "deadlift": [
        "Deadlift setup: feet hip-width apart, grip just outside your legs, back straight.",
        "Drive through your heels and hips and keep the bar close to your body.",
        "The deadlift is a hip hinge: push your hips back first, then bend your knees.",
    ],
}


def _stable_index(text: str, size: int, salt: str = "") -> int:
    return zlib.crc32(f"{salt}{text}".encode("utf-8")) % size


class FallbackResponder:
    """Never raises. Always returns a complete, tagged Response."""

    def __init__(self, templates: Optional[dict] = None, tips: Optional[dict] = None,
                 confidence: float = config.FALLBACK_CONFIDENCE):
        self.templates = templates or FALLBACK_TEMPLATES
        self.tips = tips or EXERCISE_TIPS
        self.confidence = confidence

    def respond(self, request: RequestContext, category: Optional[str] = None,
                reason: Optional[str] = None) -> Response:
        category = category if category in self.templates else "general"
        choices = self.templates[category]
        text = request.text or ""
        content = choices[_stable_index(text, len(choices))]

        tip = self._exercise_tip(request, text)
        if tip:
            content = f"{content}\n\n{tip}"

        reason = reason or DEFAULT_REASON
        logger.info("Fallback answer for %s (category=%s): %s", request.id, category, reason)
        return Response(
            content=content,
            provider=FALLBACK_PROVIDER,
            confidence=self.confidence,
            is_complete=True,
            intent=category,
            metadata=ProviderMetadata(extra={"fallback": True, "fallback_reason": reason}),
        )

    def _exercise_tip(self, request: RequestContext, text: str) -> Optional[str]:
        current = request.domain_state.get("current_exercise")
        if not isinstance(current, str):
            return None
        key = normalize_exercise(current)
        tips = self.tips.get(key) if key else None
        if not tips:
            return None
        return tips[_stable_index(text, len(tips), salt=key)]
