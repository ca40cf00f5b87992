"""
Prompt assembly for reasoning providers.

Providers see a system prompt (persona + intent focus), an optional memory
block built from the ConversationSummary, the domain state as a short
context line, and the user's text. Raw history is never replayed.
"""

from typing import Optional

import config
from domain import ConversationSummary, IntentResult, RequestContext

INTENT_FOCUS = {
    "motivation": (
        "Focus on motivation: acknowledge the struggle, emphasize progress over "
        "perfection and help the user stay consistent."
    ),
    "planning": (
        "Focus on program design: consider experience level, available time and "
        "equipment, recovery and progressive overload."
    ),
    "form": (
        "Focus on technique: break the movement into phases, give actionable "
        "cues and put safety first."
    ),
    "nutrition": (
        "Focus on nutrition: whole foods, meal timing around training, hydration. "
        "Suggest a registered dietitian for detailed meal plans."
    ),
    "biometrics": (
        "Focus on recovery signals: interpret heart rate, HRV and sleep and "
        "adjust training intensity accordingly."
    ),
    "recovery": (
        "Focus on recovery: sleep, nutrition, soreness management and when to "
        "train again."
    ),
    "progress": (
        "Focus on progress: interpret trends honestly and suggest the next step."
    ),
    "exercise": (
        "Focus on the exercise: muscles worked, setup, cues, common mistakes and variations."
    ),
}

# Domain-state keys worth surfacing to a provider.
_CONTEXT_KEYS = ("current_exercise", "workout_phase", "fitness_level", "goal", "set", "reps", "weight")


def system_prompt(intent: Optional[IntentResult], personality: str = "") -> str:
    parts = [personality or config.DEFAULT_PERSONALITY]
    focus = INTENT_FOCUS.get(intent.category) if intent else None
    if focus:
        parts.append(focus)
    return "\n\n".join(parts)


def _context_line(domain_state: dict) -> str:
    items = [f"{k}={domain_state[k]}" for k in _CONTEXT_KEYS if domain_state.get(k) not in (None, "")]
    return f"Current workout context: {', '.join(items)}" if items else ""


def build_messages(request: RequestContext, intent: Optional[IntentResult] = None,
                   summary: Optional[ConversationSummary] = None,
                   personality: str = "") -> list[dict]:
    system = system_prompt(intent, personality)
    if summary and summary.turn_count:
        system += "\n\nConversation so far:\n" + summary.to_prompt()
    context = _context_line(request.domain_state)
    if context:
        system += "\n\n" + context

    user_text = request.text.strip() if request.text else ""
    if request.has_media:
        note = "[The user attached an image.]"
        user_text = f"{user_text}\n\n{note}" if user_text else note
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user_text},
    ]
