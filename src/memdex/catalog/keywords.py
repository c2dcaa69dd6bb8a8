"""Keyword extraction and domain classification for catalog records.

All helpers return lower-cased, de-duplicated lists in first-seen order so
that downstream hashing and ranking stay deterministic.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from memdex.config import KeywordsCfg

_CAMEL_RE = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATOR_RE = re.compile(r"[_\-\s]+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

GENERAL_DOMAIN = "general"


def _dedupe(words: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(words))


def split_identifier(identifier: str) -> list[str]:
    """Split on case transitions, underscores and hyphens; lower-case the parts."""
    spaced = _CAMEL_RE.sub(r"\1 \2", identifier)
    return [w.lower() for w in _SEPARATOR_RE.split(spaced) if w]


def tokenize(text: str) -> list[str]:
    return [w for w in _NON_ALNUM_RE.split(text.lower()) if w]


def _strip_verb(part: str, verbs: Iterable[str]) -> str:
    lowered = part.lower()
    for verb in verbs:
        for sep in ("_", "-"):
            if lowered.startswith(verb + sep) and len(part) > len(verb) + 1:
                return part[len(verb) + 1 :]
    return part


def identifier_keywords(name: str, cfg: KeywordsCfg) -> list[str]:
    """Keywords from a record name such as ``mcp__stripe__create_customer``."""
    if name.startswith("mcp__"):
        name = name[len("mcp__"):]
    words: list[str] = []
    for part in name.split("__"):
        for word in split_identifier(_strip_verb(part, cfg.verb_prefixes)):
            if len(word) > 2 and word not in cfg.stop_words:
                words.append(word)
    return _dedupe(words)


def description_keywords(description: str, cfg: KeywordsCfg) -> list[str]:
    """Content words (>= 4 chars) plus allow-listed two-word phrases."""
    tokens = tokenize(description)
    words = [t for t in tokens if len(t) >= 4 and t not in cfg.stop_words]
    phrases = set(cfg.phrases)
    for first, second in zip(tokens, tokens[1:]):
        if f"{first} {second}" in phrases:
            words.append(f"{first}_{second}")
    return _dedupe(words)


def parameter_keywords(parameters: Mapping[str, Any] | None, cfg: KeywordsCfg) -> list[str]:
    """Keywords from declared parameter names (``properties`` keys when present)."""
    if not parameters:
        return []
    props = parameters.get("properties")
    names = props.keys() if isinstance(props, Mapping) else parameters.keys()
    words: list[str] = []
    for name in names:
        for word in split_identifier(str(name)):
            if len(word) > 2 and word not in cfg.stop_words:
                words.append(word)
    return _dedupe(words)


def extract_keywords(
    name: str,
    description: str,
    parameters: Mapping[str, Any] | None,
    cfg: KeywordsCfg,
) -> list[str]:
    return _dedupe(
        identifier_keywords(name, cfg)
        + description_keywords(description, cfg)
        + parameter_keywords(parameters, cfg)
    )


def task_keywords(task: str, stop_words: frozenset[str], min_length: int = 3) -> list[str]:
    """Query-side keywords: non-stop tokens of at least *min_length* chars."""
    return _dedupe(t for t in tokenize(task) if len(t) >= min_length and t not in stop_words)


def classify_domain(
    name: str,
    description: str,
    keywords: Iterable[str],
    domains: Mapping[str, Iterable[str]],
) -> str:
    """Domain whose trigger substrings occur most often; ties go to table order."""
    text = f"{name} {description} {' '.join(keywords)}".lower()
    best, best_score = GENERAL_DOMAIN, 0
    for domain, triggers in domains.items():
        score = sum(1 for trigger in triggers if trigger in text)
        if score > best_score:
            best, best_score = domain, score
    return best


def fts_or_query(terms: Iterable[str], limit: int) -> str:
    """Quote each term and join the first *limit* with OR."""
    quoted = ['"' + t.replace('"', '""') + '"' for t in list(terms)[:limit]]
    return " OR ".join(quoted)
