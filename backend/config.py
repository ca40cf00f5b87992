"""
Configuration — code constants for the coaching backend.

Deployment settings come from profile.yaml via profile_loader.get_profile();
the values here are the defaults those settings fall back to, plus internal
limits that are not user config.
"""

# ── Routing ──
DEFAULT_POLICY = "priority_with_penalty"
ATTEMPT_TIMEOUT_SECONDS = 4.0
OVERALL_DEADLINE_SECONDS = 12.0
FAILURE_THRESHOLD = 3
PENALTY_SECONDS = 30.0
DEFAULT_RATE_LIMIT_SECONDS = 30.0  # when a 429 carries no Retry-After

# ── Response cache ──
CACHE_TTL_SECONDS = 3600.0
CACHE_MAX_ENTRIES = 100

# ── Conversation Store ──
HISTORY_CAP = 10
IDLE_TTL_SECONDS = 1800.0
SUMMARY_TURNS = 5
SWEEP_INTERVAL_SECONDS = 300.0

# ── Streaming ──
# A stream nobody finishes reading is cancelled this long after its deadline.
STREAM_ABANDON_GRACE_SECONDS = 5.0

# ── Confidence ──
CONFIDENCE_THRESHOLD = 0.9
DEFAULT_PROVIDER_CONFIDENCE = 0.9
TOOL_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.5

# ── Generation ──
DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.7

# ── Providers ──
# Used when profile.yaml has no providers section.
DEFAULT_PROVIDERS = [
    {
        "id": "groq",
        "type": "groq",
        "endpoint": "https://api.groq.com/openai/v1",
        "model": "llama-3.1-70b-versatile",
        "api_key_env": "GROQ_API_KEY",
        "capability": "fast",
        "confidence": 0.92,
    },
    {
        "id": "openrouter",
        "type": "openrouter",
        "endpoint": "https://openrouter.ai/api/v1",
        "model": "anthropic/claude-3.5-sonnet",
        "api_key_env": "OPENROUTER_API_KEY",
        "capability": "quality",
        "confidence": 0.95,
    },
    {
        "id": "gemini",
        "type": "gemini",
        "endpoint": "https://generativelanguage.googleapis.com/v1beta",
        "model": "gemini-1.5-flash",
        "api_key_env": "GEMINI_API_KEY",
        "capability": "fast",
        "confidence": 0.90,
    },
]

OPENROUTER_HEADERS = {
    "HTTP-Referer": "http://localhost:3000",
    "X-Title": "AI Fitness Coach",
}

# ── Coach persona ──
DEFAULT_PERSONALITY = (
    "You are Nimbus, an expert AI fitness coach. You give safe, specific, "
    "encouraging advice about training, form, nutrition and recovery. "
    "Keep answers concise and practical."
)
