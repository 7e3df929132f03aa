from collections import Counter

from .models import CATEGORIES, ComfortPayload

MIN_TAGS = 2
MAX_TAGS = 6


def _duplicate_warnings(items: list[str], label: str) -> list[str]:
    counts = Counter(item.strip().lower() for item in items)
    return [f"duplicate {label}: {item}" for item, count in counts.items() if count > 1]


def payload_warnings(payload: ComfortPayload) -> list[str]:
    warnings: list[str] = []

    warnings.extend(_duplicate_warnings(payload.tags, "tag"))
    warnings.extend(_duplicate_warnings(payload.comfort, "comfort sentence"))

    if not MIN_TAGS <= len(payload.tags) <= MAX_TAGS:
        warnings.append(f"tag count out of range: {len(payload.tags)}")

    for index, sentence in enumerate(payload.comfort):
        if "\n" in sentence or "\r" in sentence:
            warnings.append(f"line break inside comfort[{index}]")

    if payload.category not in CATEGORIES:
        warnings.append(f"unknown category normalized to other: {payload.category}")

    return warnings
