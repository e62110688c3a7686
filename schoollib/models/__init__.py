# Models package
from .book import Book, BookGrade, BookStatus
from .student import Student
from .transaction import (
    Transaction, TransactionAction, TransactionStatus,
    OPEN_STATUSES, TERMINAL_STATUSES
)
from .bad_debt import BadDebt, BadDebtStatus, BadDebtType
from .audit_log import AuditLog, AuditAction, ResourceType, RiskLevel
from .taxonomy import TaxonomyEntry, TaxonomyType, SchemaVersion
