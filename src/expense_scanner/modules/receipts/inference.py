from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

DEFAULT_CATEGORY = "Other"
MAX_SUGGESTED_TAGS = 3


@dataclass(frozen=True)
class CategoryBucket:
    name: str
    merchant_keywords: tuple[str, ...]
    # Matched as substrings of the user's own category names. Buckets overlap
    # on purpose: user taxonomies rarely line up with ours.
    category_keywords: tuple[str, ...]


# Priority order: the first bucket whose merchant keyword matches wins.
CATEGORY_BUCKETS: tuple[CategoryBucket, ...] = (
    CategoryBucket(
        name="food",
        merchant_keywords=(
            "restaurant",
            "cafe",
            "pizza",
            "food",
            "dining",
            "burger",
            "coffee",
            "starbucks",
            "mcdonald",
        ),
        category_keywords=("food", "dining", "travel", "entertainment"),
    ),
    CategoryBucket(
        name="fuel",
        merchant_keywords=("gas", "fuel", "shell", "exxon", "bp", "chevron"),
        category_keywords=("transportation", "transport", "fuel", "auto", "gas", "travel"),
    ),
    CategoryBucket(
        name="shopping",
        merchant_keywords=("store", "mart", "shop", "target", "walmart", "costco"),
        category_keywords=("shopping", "retail", "groceries", "household"),
    ),
    CategoryBucket(
        name="travel",
        merchant_keywords=("hotel", "airline", "rental", "uber", "lyft", "taxi"),
        category_keywords=("travel", "transportation", "transport", "lodging"),
    ),
)


def match_bucket(merchant_name: str) -> CategoryBucket | None:
    merchant = merchant_name.lower()
    for bucket in CATEGORY_BUCKETS:
        if any(k in merchant for k in bucket.merchant_keywords):
            return bucket
    return None


def fallback_category(available_categories: Sequence[str]) -> str:
    for name in available_categories:
        if name.strip().lower() == "other":
            return name
    if available_categories:
        return available_categories[0]
    return DEFAULT_CATEGORY


def resolve_bucket(bucket: CategoryBucket, available_categories: Sequence[str]) -> str | None:
    for keyword in bucket.category_keywords:
        for name in available_categories:
            if keyword in name.lower():
                return name
    return None


def infer_category(merchant_name: str | None, available_categories: Sequence[str]) -> str:
    """Map a merchant onto one of the caller's categories.

    No merchant means "Other" regardless of the vocabulary. A merchant that hits
    no bucket, or a bucket with no counterpart in the vocabulary, falls back to
    the user's "other" category, then their first category, then "Other".
    """
    if not merchant_name or not merchant_name.strip():
        return DEFAULT_CATEGORY
    bucket = match_bucket(merchant_name)
    if bucket is not None:
        resolved = resolve_bucket(bucket, available_categories)
        if resolved is not None:
            return resolved
    return fallback_category(available_categories)


def _first_word(value: str) -> str:
    parts = value.split()
    return parts[0] if parts else ""


def suggest_tags(
    *,
    merchant_name: str | None,
    category: str | None,
    available_tags: Sequence[str],
) -> list[str]:
    merchant = (merchant_name or "").strip().lower()
    category_l = (category or "").strip().lower()
    merchant_word = _first_word(merchant)
    category_word = _first_word(category_l)

    matches: list[str] = []
    for tag in available_tags:
        tag_l = tag.strip().lower()
        if not tag_l:
            continue
        if (
            (merchant and tag_l in merchant)
            or (merchant_word and merchant_word in tag_l)
            or (category_l and tag_l in category_l)
            or (category_word and category_word in tag_l)
        ):
            matches.append(tag)
            if len(matches) >= MAX_SUGGESTED_TAGS:
                break

    if matches:
        return matches
    for tag in available_tags:
        if tag.strip().lower() == "receipt":
            return [tag]
    if available_tags:
        return [available_tags[0]]
    return []
