"""Load hand-authored reference docs from YAML.

File layout (``.memdex/docs.yaml`` by default)::

    docs:
      - id: integration:stripe          # optional, derived from tool_type + name
        tool_name: Stripe
        tool_type: integration          # integration | workflow
        service: stripe
        category: payment
        description: Payments and subscriptions
        operations: ["create_customer(name, email)"]
        examples:
          - wrong: "new Stripe(key).customers.create(...)"
            correct: "mcp__stripe__create_customer(...)"
        keywords: [payment, stripe]     # optional, extracted when absent
        priority: 0.9
"""

from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Any

import yaml

from memdex.catalog.keywords import extract_keywords
from memdex.config import KeywordsCfg
from memdex.db.models import CuratedDoc

_SLUG_RE = re.compile(r"[^a-z0-9]+")


class DocsFormatError(ValueError):
    """The curated docs file is not valid YAML or has the wrong shape."""


def load_docs(path: Path, keywords: KeywordsCfg | None = None) -> list[CuratedDoc]:
    """Parse *path* into CuratedDoc records.

    Raises:
        FileNotFoundError: If *path* does not exist.
        DocsFormatError: If the YAML is invalid or an entry is malformed.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise DocsFormatError(f"Invalid YAML in '{path}': {exc}") from exc

    entries = data.get("docs") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise DocsFormatError(f"'{path}' must contain a top-level 'docs:' list")

    cfg = keywords or KeywordsCfg()
    docs: list[CuratedDoc] = []
    seen: set[str] = set()
    for i, entry in enumerate(entries):
        doc = _parse_entry(entry, i, cfg)
        if doc.id in seen:
            raise DocsFormatError(f"Duplicate doc id '{doc.id}' (entry {i})")
        seen.add(doc.id)
        docs.append(doc)
    return docs


def _str_list(value: Any, field_name: str, index: int) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise DocsFormatError(f"docs[{index}].{field_name} must be a list")
    return [str(v) for v in value]


def _parse_entry(entry: Any, index: int, cfg: KeywordsCfg) -> CuratedDoc:
    if not isinstance(entry, dict) or not entry.get("tool_name"):
        raise DocsFormatError(f"docs[{index}] needs at least a 'tool_name'")

    tool_name = str(entry["tool_name"])
    tool_type = str(entry.get("tool_type") or "integration")
    description = str(entry.get("description") or entry.get("short_description") or "")
    operations = _str_list(entry.get("operations"), "operations", index)

    examples = entry.get("examples") or []
    if not isinstance(examples, list) or not all(isinstance(e, (str, dict)) for e in examples):
        raise DocsFormatError(f"docs[{index}].examples must be a list of strings or mappings")

    keywords = _str_list(entry.get("keywords"), "keywords", index)
    if not keywords:
        keywords = extract_keywords(tool_name, description, None, cfg)

    doc = CuratedDoc(
        id=str(entry.get("id") or f"{tool_type}:{_SLUG_RE.sub('-', tool_name.lower()).strip('-')}"),
        tool_name=tool_name,
        tool_type=tool_type,
        service=_optional_str(entry.get("service")),
        category=_optional_str(entry.get("category")),
        description=description,
        operations=operations,
        examples=examples,
        keywords=[k.lower() for k in keywords],
        priority=_priority(entry.get("priority", 0.5), index),
    )
    doc.full_documentation = str(entry.get("full_documentation") or generate_documentation(doc))
    doc.token_count = math.ceil(len(doc.full_documentation) / 4)
    return doc


def _priority(value: Any, index: int) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise DocsFormatError(f"docs[{index}].priority must be a number, got {value!r}") from exc


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def generate_documentation(doc: CuratedDoc) -> str:
    """Render long-form text from a doc's description, operations and examples."""
    parts = [doc.tool_name, doc.description, ""]
    if doc.operations:
        parts.append("Operations:")
        parts.extend(f"- {op}" for op in doc.operations)
    if doc.examples:
        parts.append("")
        parts.append("Examples:")
        for example in doc.examples:
            if isinstance(example, dict):
                if "wrong" in example:
                    parts.append(f"WRONG: {example['wrong']}")
                if "correct" in example:
                    parts.append(f"CORRECT: {example['correct']}")
                parts.append("")
            else:
                parts.append(str(example))
    return "\n".join(parts).rstrip() + "\n"
