from __future__ import annotations

from expense_scanner.modules.receipts.inference import infer_category, suggest_tags


def test_category_uses_bucket_keyword_order_over_vocabulary_order():
    category = infer_category("Starbucks Coffee", ["Travel", "Food & Dining"])
    assert category == "Food & Dining"


def test_category_matches_substring_of_user_category():
    category = infer_category("Shell Gas Station", ["Groceries", "Auto & Transport"])
    assert category == "Auto & Transport"
    assert infer_category("TARGET", ["Food & Dining", "Shopping", "Other"]) == "Shopping"


def test_category_falls_back_to_other_then_first_then_literal():
    assert infer_category("Acme Widgets", ["Business", "other"]) == "other"
    assert infer_category("Acme Widgets", ["Business", "Travel"]) == "Business"
    assert infer_category("Acme Widgets", []) == "Other"


def test_matched_bucket_without_counterpart_falls_back():
    assert infer_category("Uber", ["Groceries", "Misc"]) == "Groceries"


def test_category_without_merchant_is_other():
    assert infer_category(None, ["Food & Dining"]) == "Other"
    assert infer_category("   ", ["Food & Dining"]) == "Other"


def test_tags_match_merchant_and_category_and_cap_at_three():
    tags = suggest_tags(
        merchant_name="Starbucks Coffee",
        category="Food & Dining",
        available_tags=["starbucks", "coffee", "food", "work", "receipt"],
    )
    assert tags == ["starbucks", "coffee", "food"]


def test_tags_fall_back_to_receipt_tag():
    tags = suggest_tags(merchant_name="Acme", category="Other", available_tags=["work", "Receipt"])
    assert tags == ["Receipt"]


def test_tags_fall_back_to_first_tag_or_nothing():
    tags = suggest_tags(merchant_name="Acme", category="Other", available_tags=["work", "home"])
    assert tags == ["work"]
    assert suggest_tags(merchant_name="Acme", category="Other", available_tags=[]) == []


def test_empty_merchant_and_category_match_nothing():
    tags = suggest_tags(merchant_name="", category="", available_tags=["alpha", "beta"])
    assert tags == ["alpha"]


def test_category_against_office_vocabulary():
    vocabulary = ["Food & Dining", "Office Supplies", "Other"]
    assert infer_category("Starbucks Coffee", vocabulary) == "Food & Dining"
    # "shop" hits the shopping bucket, which has no counterpart here.
    assert infer_category("Unknown Shop", vocabulary) == "Other"
