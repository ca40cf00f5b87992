"""
Profile System — loads profile.yaml and provides validated configuration.

The profile is the single source of truth for all deployment settings:
coach persona, reasoning providers, routing policy and deadlines,
conversation limits, stream pacing, enabled plugins and CORS origins.
Credentials are never stored in the profile; each provider names the
environment variable holding its key (api_key_env).

Usage:
    from profile_loader import get_profile
    profile = get_profile()
    print(profile.routing.policy)
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

import config

logger = logging.getLogger(__name__)

# ── Profile Path Resolution ──
_PROJECT_ROOT = Path(__file__).parent.parent
_DEFAULT_PROFILE_PATH = _PROJECT_ROOT / "profile.yaml"


# ── Dataclasses ──

@dataclass
class SystemConfig:
    name: str = "Nimbus"
    description: str = "AI fitness coach"


@dataclass
class WebConfig:
    cors_origins: list[str] = field(default_factory=lambda: [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ])


@dataclass
class ProviderConfig:
    id: str = ""
    type: str = "openai"  # openai | openrouter | groq | gemini
    endpoint: str = ""
    model: str = ""
    api_key_env: str = ""
    capability: str = "fast"  # fast | quality
    confidence: float = config.DEFAULT_PROVIDER_CONFIDENCE
    max_tokens: int = config.DEFAULT_MAX_TOKENS
    temperature: float = config.DEFAULT_TEMPERATURE
    headers: dict = field(default_factory=dict)
    enabled: bool = True

    @property
    def api_key(self) -> str:
        """Credential read from the environment. Empty when unset."""
        if not self.api_key_env:
            return ""
        return os.environ.get(self.api_key_env, "")


def _default_providers() -> list[ProviderConfig]:
    return [ProviderConfig(**dict(p)) for p in config.DEFAULT_PROVIDERS]


@dataclass
class RoutingConfig:
    policy: str = config.DEFAULT_POLICY  # static | priority_with_penalty | round_robin
    attempt_timeout_seconds: float = config.ATTEMPT_TIMEOUT_SECONDS
    overall_deadline_seconds: float = config.OVERALL_DEADLINE_SECONDS
    failure_threshold: int = config.FAILURE_THRESHOLD
    penalty_seconds: float = config.PENALTY_SECONDS
    intent_priorities: dict = field(default_factory=dict)  # intent -> [provider ids]
    cache_enabled: bool = True
    cache_ttl_seconds: float = config.CACHE_TTL_SECONDS
    cache_max_entries: int = config.CACHE_MAX_ENTRIES


@dataclass
class ConversationConfig:
    history_cap: int = config.HISTORY_CAP
    idle_ttl_seconds: float = config.IDLE_TTL_SECONDS
    summary_turns: int = config.SUMMARY_TURNS
    sweep_interval_seconds: float = config.SWEEP_INTERVAL_SECONDS


@dataclass
class StreamingConfig:
    min_chunk_delay: float = 0.0
    max_chunk_delay: float = 0.0


@dataclass
class PluginsConfig:
    enabled: list[str] = field(default_factory=list)


@dataclass
class PromptsConfig:
    personality: str = ""


@dataclass
class Profile:
    system: SystemConfig = field(default_factory=SystemConfig)
    web: WebConfig = field(default_factory=WebConfig)
    providers: list[ProviderConfig] = field(default_factory=_default_providers)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    plugins: PluginsConfig = field(default_factory=PluginsConfig)
    prompts: PromptsConfig = field(default_factory=PromptsConfig)

    def get_provider(self, provider_id: str) -> Optional[ProviderConfig]:
        for p in self.providers:
            if p.id == provider_id:
                return p
        return None

    def enabled_providers(self) -> list[ProviderConfig]:
        return [p for p in self.providers if p.enabled]


# ── Parsing ──

def _parse_dict(data: dict, cls, **overrides):
    """Create a dataclass instance from a dict, ignoring unknown keys."""
    field_names = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in field_names}
    filtered.update(overrides)
    return cls(**filtered)


def _parse_providers(raw_list) -> list[ProviderConfig]:
    providers = []
    seen = set()
    for entry in raw_list or []:
        if not isinstance(entry, dict):
            continue
        provider = _parse_dict(entry, ProviderConfig)
        if not provider.id:
            logger.warning("Skipping provider entry without an id: %s", entry.get("type", "?"))
            continue
        if provider.id in seen:
            logger.warning("Duplicate provider id '%s' in profile — keeping the first", provider.id)
            continue
        seen.add(provider.id)
        providers.append(provider)
    return providers


def load_profile_from_dict(raw: dict) -> Profile:
    """Parse a raw YAML dict into a Profile dataclass."""
    profile = Profile()

    if isinstance(raw.get("system"), dict):
        profile.system = _parse_dict(raw["system"], SystemConfig)

    if isinstance(raw.get("web"), dict):
        profile.web = _parse_dict(raw["web"], WebConfig)

    if isinstance(raw.get("providers"), list):
        profile.providers = _parse_providers(raw["providers"])

    if isinstance(raw.get("routing"), dict):
        routing = _parse_dict(raw["routing"], RoutingConfig)
        if not isinstance(routing.intent_priorities, dict):
            logger.warning("routing.intent_priorities must be a mapping — ignoring")
            routing.intent_priorities = {}
        profile.routing = routing

    if isinstance(raw.get("conversation"), dict):
        profile.conversation = _parse_dict(raw["conversation"], ConversationConfig)

    if isinstance(raw.get("streaming"), dict):
        streaming = _parse_dict(raw["streaming"], StreamingConfig)
        if streaming.max_chunk_delay < streaming.min_chunk_delay:
            streaming.max_chunk_delay = streaming.min_chunk_delay
        profile.streaming = streaming

    if isinstance(raw.get("plugins"), dict):
        enabled = raw["plugins"].get("enabled", [])
        profile.plugins = PluginsConfig(enabled=[str(n) for n in enabled or []])

    if isinstance(raw.get("prompts"), dict):
        profile.prompts = _parse_dict(raw["prompts"], PromptsConfig)

    return profile


def load_profile(path: Path) -> Profile:
    """Load a profile from a specific file. Falls back to defaults if missing."""
    path = Path(path)
    if not path.exists():
        logger.warning("No profile.yaml found at %s — using defaults", path)
        return Profile()

    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        logger.error("Failed to parse %s: %s — using defaults", path, e)
        return Profile()

    if not isinstance(raw, dict):
        logger.warning("profile.yaml is not a valid YAML mapping — using defaults")
        return Profile()

    profile = load_profile_from_dict(raw)
    logger.info("Profile loaded: system=%s, providers=%s, policy=%s",
                profile.system.name,
                [p.id for p in profile.enabled_providers()],
                profile.routing.policy)
    return profile


def _profile_path() -> Path:
    env_path = os.environ.get("PROFILE_PATH")
    return Path(env_path) if env_path else _DEFAULT_PROFILE_PATH


# ── Singleton ──

_profile: Optional[Profile] = None


def get_profile() -> Profile:
    """Return the validated profile singleton. Loads on first call."""
    global _profile
    if _profile is None:
        _profile = load_profile(_profile_path())
    return _profile


def reload_profile() -> Profile:
    """Force reload of the profile from disk."""
    global _profile
    _profile = load_profile(_profile_path())
    return _profile
