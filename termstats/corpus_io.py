"""
Corpus loading for the experiment scripts.

Reads documents from JSONL (one JSON object per line) or CSV (header row),
picks out the text column and optionally splits records into groups, e.g.
by collection or author, so that two groups can be compared.

Usage:
    from termstats.corpus_io import load_corpus, group_records

    docs = load_corpus("data/reviews.csv")
    groups = group_records(docs, "rating")
"""

from __future__ import annotations

import csv
import json
from collections import defaultdict
from pathlib import Path


def load_corpus(corpus_path: str | Path) -> list[dict]:
    """Load corpus as list of records. Format is chosen by file extension."""
    corpus_path = Path(corpus_path)
    if corpus_path.suffix.lower() == ".csv":
        with open(corpus_path, "r", encoding="utf-8", newline="") as f:
            return list(csv.DictReader(f))

    docs = []
    with open(corpus_path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                docs.append(json.loads(line))
    return docs


def texts_of(docs: list[dict], text_field: str = "text") -> list[str]:
    """Text of each record; missing or null text becomes ''."""
    return [str(d.get(text_field) or "") for d in docs]


def ids_of(docs: list[dict], id_field: str = "doc_id") -> list[str] | None:
    """Record ids, or None when any record lacks one."""
    ids = [d.get(id_field) for d in docs]
    if any(i is None for i in ids):
        return None
    return [str(i) for i in ids]


def group_records(docs: list[dict], group_key: str) -> dict[str, list[dict]]:
    """Split records by the string value of `group_key` ('unknown' if absent)."""
    groups = defaultdict(list)
    for doc in docs:
        value = doc.get(group_key)
        groups["unknown" if value in (None, "") else str(value)].append(doc)
    return dict(sorted(groups.items()))
