"""
Core package — coaching orchestration.

Structure:
    coach_core.py      — CoachCore facade and build_core()
    classification.py  — rule-based intent classifier
    conversation.py    — per-conversation history with ordered commits
    streaming.py       — ResponseStream chunked delivery

Usage:
    from core import CoachCore, build_core
"""

from core.coach_core import CoachCore, build_core, suggestions_for
from core.classification import IntentClassifier, IntentRule
from core.conversation import ConversationStore
from core.streaming import ResponseStream, StreamEvent

__all__ = [
    "CoachCore",
    "build_core",
    "suggestions_for",
    "IntentClassifier",
    "IntentRule",
    "ConversationStore",
    "ResponseStream",
    "StreamEvent",
]
