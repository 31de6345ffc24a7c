from .tenancy import Organization, Store
from .ledger import LedgerEvent
from .workflows import WorkflowRecord
from .billing import Invoice, InvoiceLineItem, BillingPayment, PaymentAllocation

__all__ = [
    'Organization', 'Store',
    'LedgerEvent',
    'WorkflowRecord',
    'Invoice', 'InvoiceLineItem', 'BillingPayment', 'PaymentAllocation',
]
