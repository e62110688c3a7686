# Schemas package
from .book import BookBase, BookCreate, BookUpdate, BookResponse, BookListResponse
from .transaction import (
    TransactionCreate, TransactionUpdate, TransactionResponse, TransactionListItem,
    TransactionListResponse, ReturnResult, LossReport
)
from .bad_debt import BadDebtCreate, BadDebtUpdate, BadDebtResponse
from .student import (
    StudentBase, StudentCreate, StudentUpdate, StudentResponse,
    StudentListResponse, StudentProfile
)
from .audit_log import AuditLogCreate, AuditLogResponse, AuditLogFilter, AuditLogListResponse
from .taxonomy import TaxonomyCreate, TaxonomyResponse
from .report import DashboardStats, TopBook, RowError, RowRejection, ImportSummary
