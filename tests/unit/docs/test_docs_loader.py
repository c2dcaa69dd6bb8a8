"""Tests for the curated docs YAML loader."""

from __future__ import annotations

import math
from pathlib import Path

import pytest
import yaml

from memdex.docs.loader import DocsFormatError, generate_documentation, load_docs


def _docs_file(tmp_path: Path, entries) -> Path:
    path = tmp_path / "docs.yaml"
    path.write_text(yaml.dump({"docs": entries}), encoding="utf-8")
    return path


def test_load_full_entry(tmp_path):
    path = _docs_file(
        tmp_path,
        [
            {
                "id": "integration:stripe",
                "tool_name": "Stripe",
                "tool_type": "integration",
                "service": "stripe",
                "category": "payment",
                "description": "Payments and subscriptions",
                "operations": ["create_customer(name, email)"],
                "examples": [{"wrong": "new Stripe(key)", "correct": "stripe__create_customer()"}],
                "keywords": ["Payment", "stripe"],
                "priority": 0.9,
            }
        ],
    )
    (doc,) = load_docs(path)
    assert doc.id == "integration:stripe"
    assert doc.keywords == ["payment", "stripe"]
    assert doc.priority == pytest.approx(0.9)
    assert "CORRECT: stripe__create_customer()" in doc.full_documentation
    assert doc.token_count == math.ceil(len(doc.full_documentation) / 4)


def test_defaults_for_minimal_entry(tmp_path):
    path = _docs_file(tmp_path, [{"tool_name": "Deploy Preview", "short_description": "Ship previews"}])
    (doc,) = load_docs(path)
    assert doc.id == "integration:deploy-preview"
    assert doc.tool_type == "integration"
    assert doc.description == "Ship previews"
    assert doc.priority == pytest.approx(0.5)
    assert "preview" in doc.keywords
    assert doc.service is None


def test_explicit_full_documentation_kept(tmp_path):
    path = _docs_file(tmp_path, [{"tool_name": "git", "full_documentation": "Hand written."}])
    (doc,) = load_docs(path)
    assert doc.full_documentation == "Hand written."
    assert doc.token_count == 4


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_docs(tmp_path / "absent.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "docs.yaml"
    path.write_text("docs: [unclosed", encoding="utf-8")
    with pytest.raises(DocsFormatError, match="Invalid YAML"):
        load_docs(path)


def test_missing_docs_list(tmp_path):
    path = tmp_path / "docs.yaml"
    path.write_text("tools: []\n", encoding="utf-8")
    with pytest.raises(DocsFormatError, match="docs:"):
        load_docs(path)


@pytest.mark.parametrize(
    "entry,match",
    [
        ({"description": "no name"}, "tool_name"),
        ({"tool_name": "x", "operations": "one"}, "operations"),
        ({"tool_name": "x", "examples": [3]}, "examples"),
        ({"tool_name": "x", "priority": "high"}, "priority"),
    ],
)
def test_malformed_entries(tmp_path, entry, match):
    with pytest.raises(DocsFormatError, match=match):
        load_docs(_docs_file(tmp_path, [entry]))


def test_duplicate_ids_rejected(tmp_path):
    path = _docs_file(tmp_path, [{"tool_name": "Stripe"}, {"tool_name": "stripe"}])
    with pytest.raises(DocsFormatError, match="Duplicate"):
        load_docs(path)


def test_generate_documentation_layout(tmp_path):
    (doc,) = load_docs(
        _docs_file(
            tmp_path,
            [{"tool_name": "vapi", "description": "Voice", "operations": ["create_call"], "examples": ["call()"]}],
        )
    )
    doc.full_documentation = ""
    assert generate_documentation(doc) == "vapi\nVoice\n\nOperations:\n- create_call\n\nExamples:\ncall()\n"
