"""
ConversationStore — in-memory, per-conversation history with ordered commits.

Each conversation keeps at most `history_cap` turns (oldest evicted first)
and is dropped after `idle_ttl` seconds without activity. Turns commit in
acceptance order: CoachCore reserves a ticket when it accepts a request and
commits (or releases) that ticket when the answer is ready, so a slow answer
to an earlier message is never recorded after a fast answer to a later one.

Every conversation has its own asyncio.Condition; requests on different
conversations never wait on each other.
"""

import asyncio
import copy
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import config
from domain import ConversationState, ConversationSummary, ConversationTurn

logger = logging.getLogger(__name__)


@dataclass
class _Slot:
    cond: asyncio.Condition = field(default_factory=asyncio.Condition)
    state: Optional[ConversationState] = None
    next_ticket: int = 0
    head: int = 0  # the only ticket allowed to commit right now
    released: set = field(default_factory=set)  # tickets abandoned ahead of head
    last_activity: float = 0.0

    @property
    def pending(self) -> int:
        return self.next_ticket - self.head

    def advance(self):
        self.head += 1
        while self.head in self.released:
            self.released.discard(self.head)
            self.head += 1

    def settle(self, ticket: int):
        """Mark a ticket as done without a turn. Caller holds cond."""
        if ticket == self.head:
            self.advance()
        elif ticket > self.head:
            self.released.add(ticket)


class ConversationStore:

    def __init__(self, history_cap: int = config.HISTORY_CAP,
                 idle_ttl: float = config.IDLE_TTL_SECONDS,
                 summary_turns: int = config.SUMMARY_TURNS,
                 clock: Callable[[], float] = time.monotonic):
        if history_cap < 1:
            raise ValueError("history_cap must be at least 1")
        self.history_cap = history_cap
        self.idle_ttl = idle_ttl
        self.summary_turns = summary_turns
        self._clock = clock
        self._slots: dict[str, _Slot] = {}

    def _slot(self, conversation_id: str) -> _Slot:
        slot = self._slots.get(conversation_id)
        if slot is None:
            slot = _Slot(last_activity=self._clock())
            self._slots[conversation_id] = slot
        return slot

    # ── Ordering ──

    def reserve(self, conversation_id: str) -> int:
        """Take the next commit slot for this conversation."""
        slot = self._slot(conversation_id)
        ticket = slot.next_ticket
        slot.next_ticket += 1
        slot.last_activity = self._clock()
        return ticket

    async def release(self, conversation_id: str, ticket: int):
        """Give up a reserved slot without committing a turn."""
        slot = self._slots.get(conversation_id)
        if slot is None:
            return
        async with slot.cond:
            slot.settle(ticket)
            slot.cond.notify_all()

    # ── Writes ──

    async def append(self, conversation_id: str, turn: ConversationTurn,
                     ticket: Optional[int] = None) -> ConversationState:
        """Commit a turn, waiting for every earlier ticket first."""
        if ticket is None:
            ticket = self.reserve(conversation_id)
        slot = self._slot(conversation_id)

        async with slot.cond:
            try:
                await slot.cond.wait_for(lambda: slot.head >= ticket)
            except asyncio.CancelledError:
                # the waiter is gone; later tickets must not queue behind it
                slot.settle(ticket)
                slot.cond.notify_all()
                raise
            try:
                if slot.head == ticket:
                    self._apply(conversation_id, slot, turn)
                else:
                    logger.warning("Ticket %d for %s already passed — turn dropped",
                                   ticket, conversation_id)
            finally:
                if slot.head == ticket:
                    slot.advance()
                slot.cond.notify_all()
        return slot.state

    def _apply(self, conversation_id: str, slot: _Slot, turn: ConversationTurn):
        state = slot.state
        if state is None:
            state = ConversationState(id=conversation_id, started_at=turn.timestamp,
                                      updated_at=turn.timestamp)
            slot.state = state
            logger.debug("Conversation %s created", conversation_id)

        if state.turns and turn.timestamp < state.turns[-1].timestamp:
            turn = dataclasses.replace(turn, timestamp=state.turns[-1].timestamp)

        state.turns.append(turn)
        evicted = len(state.turns) - self.history_cap
        if evicted > 0:
            del state.turns[:evicted]
            logger.debug("Conversation %s evicted %d turn(s)", conversation_id, evicted)

        state.total_tool_calls += len(turn.tools_used)
        if turn.intent:
            counts = state.intent_counts
            counts[turn.intent] = counts.get(turn.intent, 0) + 1
            # ties go to the most recent intent
            if counts[turn.intent] >= counts.get(state.primary_intent, 0):
                state.primary_intent = turn.intent
            state.last_intent = turn.intent
        state.updated_at = turn.timestamp
        slot.last_activity = self._clock()

    async def clear(self, conversation_id: str) -> bool:
        """Forget a conversation's history. Returns False if it was unknown."""
        slot = self._slots.get(conversation_id)
        if slot is None or slot.state is None:
            return False
        async with slot.cond:
            slot.state = None
            if slot.pending == 0:
                self._slots.pop(conversation_id, None)
        logger.info("Conversation %s cleared", conversation_id)
        return True

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop conversations idle for longer than idle_ttl. Returns how many."""
        now = self._clock() if now is None else now
        expired = [
            cid for cid, slot in self._slots.items()
            if slot.pending == 0 and now - slot.last_activity > self.idle_ttl
        ]
        for cid in expired:
            del self._slots[cid]
        if expired:
            logger.info("Swept %d idle conversation(s)", len(expired))
        return len(expired)

    # ── Reads ──

    def get(self, conversation_id: str) -> Optional[ConversationState]:
        slot = self._slots.get(conversation_id)
        if slot is None or slot.state is None:
            return None
        return copy.deepcopy(slot.state)

    def conversation_ids(self) -> list[str]:
        return [cid for cid, slot in self._slots.items() if slot.state is not None]

    def summarize(self, conversation_id: str) -> Optional[ConversationSummary]:
        slot = self._slots.get(conversation_id)
        if slot is None or slot.state is None:
            return None
        state = slot.state
        recent = state.turns[-self.summary_turns:] if self.summary_turns else []

        topics = []
        for turn in recent:
            for topic in turn.tools_used or ([turn.intent] if turn.intent else []):
                if topic not in topics:
                    topics.append(topic)

        tools = sorted({t for turn in state.turns for t in turn.tools_used})
        return ConversationSummary(
            conversation_id=conversation_id,
            turn_count=len(state.turns),
            recent_topics=topics,
            tools_used=tools,
            primary_intent=state.primary_intent,
            last_intent=state.last_intent,
        )

    def __len__(self):
        return len(self.conversation_ids())
