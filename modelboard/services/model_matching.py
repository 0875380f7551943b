"""
Model identity resolution.

Maps a model name as written by an external source onto one of our
canonical model slugs. Strategies are tried in order and the first hit
wins:

1. source-scoped name mapping (curated or previously discovered)
2. the external name is itself a canonical slug
3. both sides normalized, then compared
4. token-set Jaccard similarity over the normalized forms

Everything here is pure; persisting a newly discovered mapping is up to
the caller.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Set, Tuple

JACCARD_THRESHOLD = 0.7

# Compound forms must come before their base forms
VARIANT_SUFFIXES: Tuple[str, ...] = (
    "-thinking-16k", "-thinking-32k", "-thinking-64k", "-thinking-128k",
    "-non-reasoning",
    # Behavior variants
    "-adaptive", "-reasoning", "-thinking",
    "-so-true", "-so-false",
    # Effort levels
    "-low", "-medium", "-high", "-xhigh",
    # Release stages
    "-instruct", "-preview", "-experimental", "-exp",
    "-beta", "-old", "-latest", "-free",
)

PROVIDER_PREFIXES: Tuple[str, ...] = (
    "anthropic/", "openai/", "google/", "meta-llama/", "mistralai/",
    "deepseek/", "x-ai/", "qwen/", "nvidia/", "cohere/",
    "moonshot/", "zhipu/", "minimax/",
)

_PARENTHETICAL_RE = re.compile(r"\([^)]*\)")
_LONG_DATE_RE = re.compile(r"-\d{8,}$")
_ISO_DATE_RE = re.compile(r"-\d{4}-\d{2}-\d{2}$")
_MONTH_DAY_RE = re.compile(r"-\d{2}-\d{2}$")
_PARAM_COUNT_RE = re.compile(r"(-\d+[bemk])+")
_VERSION_SEPARATOR_RE = re.compile(r"(\d)[.\-](\d)")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9 ]")
_WHITESPACE_RE = re.compile(r"\s+")


class MatchStrategy(str, Enum):
    """Which resolution step produced a match."""
    MAPPING = "mapping"
    SLUG = "slug"
    NORMALIZED = "normalized"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class MatchResult:
    slug: str
    strategy: MatchStrategy
    similarity: float = 1.0

    @property
    def is_discovered(self) -> bool:
        """True when the match came from name comparison rather than a lookup."""
        return self.strategy in (MatchStrategy.NORMALIZED, MatchStrategy.FUZZY)


@dataclass
class MatchContext:
    """Preloaded lookup data for one source."""
    mappings: Dict[str, str] = field(default_factory=dict)   # external_name -> slug
    slugs: Set[str] = field(default_factory=set)
    normalized_slugs: Dict[str, str] = field(default_factory=dict)  # normalize_name(slug) -> slug

    @classmethod
    def build(cls, slugs: Iterable[str], mappings: Optional[Mapping[str, str]] = None) -> "MatchContext":
        slug_set = set()
        normalized = {}
        for slug in slugs:
            slug_set.add(slug)
            normalized[normalize_name(slug)] = slug
        return cls(mappings=dict(mappings or {}), slugs=slug_set, normalized_slugs=normalized)


def normalize_name(name: str) -> str:
    """
    Normalize a model name for comparison.

    ``"anthropic/Claude-Opus-4.5-Thinking"`` and
    ``"claude-opus-4-5"`` both become ``"claude opus 45"``.
    """
    s = name.lower().strip()

    for prefix in PROVIDER_PREFIXES:
        if s.startswith(prefix):
            s = s[len(prefix):]
            break

    s = _PARENTHETICAL_RE.sub("", s)

    # Suffixes can stack, e.g. "-instruct-preview"
    changed = True
    while changed:
        changed = False
        for suffix in VARIANT_SUFFIXES:
            if s.endswith(suffix):
                s = s[:-len(suffix)]
                changed = True
                break

    s = _LONG_DATE_RE.sub("", s)
    s = _ISO_DATE_RE.sub("", s)
    s = _MONTH_DAY_RE.sub("", s)

    # Parameter counts: -7b, -405b, -17b-128e
    s = _PARAM_COUNT_RE.sub("", s)

    # 4.6, 4-6 and 46 compare equal
    s = _VERSION_SEPARATOR_RE.sub(r"\1\2", s)

    s = _NON_ALNUM_RE.sub(" ", s)
    s = _WHITESPACE_RE.sub(" ", s).strip()

    return s


def tokenize(name: str) -> Set[str]:
    """Token set of the normalized name: ``"Claude Opus 4.5"`` -> ``{"claude", "opus", "45"}``."""
    return set(normalize_name(name).split())


def jaccard_similarity(a: Set[str], b: Set[str]) -> float:
    """Intersection over union. Two empty sets are not similar."""
    if not a and not b:
        return 0.0
    intersection = len(a & b)
    union = len(a) + len(b) - intersection
    return intersection / union if union else 0.0


def resolve(external_name: str, ctx: MatchContext) -> Optional[MatchResult]:
    """Resolve an external model name, reporting which strategy matched."""
    mapped = ctx.mappings.get(external_name)
    if mapped:
        return MatchResult(mapped, MatchStrategy.MAPPING)

    if external_name in ctx.slugs:
        return MatchResult(external_name, MatchStrategy.SLUG)

    normalized = normalize_name(external_name)
    norm_match = ctx.normalized_slugs.get(normalized)
    if norm_match:
        return MatchResult(norm_match, MatchStrategy.NORMALIZED)

    tokens = set(normalized.split())
    best_match = None
    best_score = 0.0

    for norm_slug, slug in ctx.normalized_slugs.items():
        score = jaccard_similarity(tokens, set(norm_slug.split()))
        # Ties keep the first candidate seen
        if score > best_score and score >= JACCARD_THRESHOLD:
            best_score = score
            best_match = slug

    if best_match is None:
        return None
    return MatchResult(best_match, MatchStrategy.FUZZY, best_score)


def resolve_model_slug(external_name: str, ctx: MatchContext) -> Optional[str]:
    """Resolve an external model name to our slug, or None when nothing is confident enough."""
    result = resolve(external_name, ctx)
    return result.slug if result else None
