from .inventory import Product, Batch, Service
from .parties import Customer, Supplier, Employee, DepositHolder
from .invoices import (
    SaleInvoice,
    SaleInvoiceLine,
    SaleLineDeduction,
    PurchaseInvoice,
    PurchaseInvoiceLine,
    InTransitInvoice,
    InTransitLine,
)
from .transactions import (
    CustomerTransaction,
    SupplierTransaction,
    PayrollTransaction,
    DepositTransaction,
    Expense,
)
from .settings import StoreSetting, EditPointer

__all__ = [
    'Product', 'Batch', 'Service',
    'Customer', 'Supplier', 'Employee', 'DepositHolder',
    'SaleInvoice', 'SaleInvoiceLine', 'SaleLineDeduction',
    'PurchaseInvoice', 'PurchaseInvoiceLine',
    'InTransitInvoice', 'InTransitLine',
    'CustomerTransaction', 'SupplierTransaction', 'PayrollTransaction', 'DepositTransaction',
    'Expense',
    'StoreSetting', 'EditPointer',
]
