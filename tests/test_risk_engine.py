from schoollib.models.audit_log import AuditAction, ResourceType, RiskLevel
from schoollib.services.risk_engine import evaluate_risk


def test_quantity_change_at_threshold_is_high():
    result = evaluate_risk("update", "book", {"quantity": 10}, {"quantity": 15})
    assert result.is_risky
    assert result.risk_level == RiskLevel.HIGH
    assert "50%" in result.notes


def test_small_quantity_change_is_not_risky():
    result = evaluate_risk(AuditAction.UPDATE, ResourceType.BOOK, {"quantity": 10}, {"quantity": 14})
    assert not result.is_risky


def test_price_change_is_high():
    result = evaluate_risk("update", "book", {"price": 850}, {"price": 425})
    assert result.risk_level == RiskLevel.HIGH
    assert "price" in result.notes.lower()


def test_quantity_rule_wins_over_price_rule():
    result = evaluate_risk(
        "update", "book",
        {"quantity": 10, "price": 100}, {"quantity": 20, "price": 200}
    )
    assert "quantity" in result.notes.lower()


def test_zero_previous_value_is_ignored():
    result = evaluate_risk("update", "book", {"quantity": 0, "status": "active"}, {"quantity": 10, "status": "active"})
    assert not result.is_risky


def test_delete_with_copies_on_loan_is_high():
    result = evaluate_risk("delete", "book", {"quantity": 5, "available_quantity": 3}, None)
    assert result.risk_level == RiskLevel.HIGH
    assert "active loans" in result.notes


def test_delete_with_all_copies_on_shelf_is_not_risky():
    result = evaluate_risk("delete", "book", {"quantity": 5, "available_quantity": 5}, None)
    assert not result.is_risky


def test_returned_without_return_date_is_medium():
    result = evaluate_risk(
        "update", "transaction",
        {"status": "active"}, {"status": "returned", "return_date": None}
    )
    assert result.risk_level == RiskLevel.MEDIUM


def test_returned_with_return_date_is_not_risky():
    result = evaluate_risk(
        "update", "transaction",
        {"status": "active"}, {"status": "returned", "return_date": "2024-03-01T10:00:00"}
    )
    assert not result.is_risky


def test_book_status_change_is_low():
    result = evaluate_risk(
        "update", "book",
        {"quantity": 5, "status": "active"}, {"quantity": 5, "status": "damaged"}
    )
    assert result.risk_level == RiskLevel.LOW
    assert "active" in result.notes and "damaged" in result.notes


def test_create_is_not_risky():
    result = evaluate_risk("create", "student", None, {"name": "Amina"})
    assert not result.is_risky
