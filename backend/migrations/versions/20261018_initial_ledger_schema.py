"""Initial ledger schema: products, lots, invoices, parties, transactions

Revision ID: 20261018_initial_ledger
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_ledger"
down_revision = None
branch_labels = None
depends_on = None


def _balance_columns():
    return [
        sa.Column("balance", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("balance_afn", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("balance_usd", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("balance_irt", sa.Float(), nullable=False, server_default=sa.text("0")),
    ]


def _transaction_columns():
    return [
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("exchange_rate", sa.Float(), nullable=False, server_default=sa.text("1")),
        sa.Column("amount_base", sa.Float(), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("invoice_id", sa.String(16), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("manufacturer", sa.String(255), nullable=True),
        sa.Column("sale_price", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("items_per_package", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_name", ["name"], unique=False)
        batch_op.create_index("ix_products_barcode", ["barcode"], unique=False)

    op.create_table(
        "batches",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("product_id", sa.String(32), nullable=False),
        sa.Column("lot_number", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("unit_cost", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "lot_number", name="uq_batches_product_lot"),
    )
    with op.batch_alter_table("batches", schema=None) as batch_op:
        batch_op.create_index("ix_batches_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_batches_product_expiry", ["product_id", "expiry_date"], unique=False)

    op.create_table(
        "services",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("credit_limit", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        *_balance_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "suppliers",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        *_balance_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("position", sa.String(120), nullable=True),
        sa.Column("monthly_salary", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        *_balance_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "deposit_holders",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        *_balance_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "in_transit_invoices",
        sa.Column("id", sa.String(16), nullable=False),
        sa.Column("type", sa.String(16), nullable=False, server_default="in_transit"),
        sa.Column("supplier_id", sa.String(32), nullable=False),
        sa.Column("invoice_number", sa.String(64), nullable=True),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("exchange_rate", sa.Float(), nullable=False, server_default=sa.text("1")),
        sa.Column("total_amount", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount_base", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("paid_amount", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("remainder_cancelled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("expected_arrival_date", sa.Date(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("in_transit_invoices", schema=None) as batch_op:
        batch_op.create_index("ix_in_transit_invoices_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_in_transit_invoices_status", ["status"], unique=False)

    op.create_table(
        "in_transit_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.String(16), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(32), nullable=False),
        sa.Column("lot_number", sa.String(64), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("at_factory_qty", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("in_transit_qty", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("received_qty", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["invoice_id"], ["in_transit_invoices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_id", "product_id", name="uq_in_transit_lines_invoice_product"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("in_transit_lines", schema=None) as batch_op:
        batch_op.create_index("ix_in_transit_lines_invoice_id", ["invoice_id"], unique=False)
        batch_op.create_index("ix_in_transit_lines_product_id", ["product_id"], unique=False)

    op.create_table(
        "sale_invoices",
        sa.Column("id", sa.String(16), nullable=False),
        sa.Column("type", sa.String(16), nullable=False, server_default="sale"),
        sa.Column("original_invoice_id", sa.String(16), nullable=True),
        sa.Column("customer_id", sa.String(32), nullable=True),
        sa.Column("intermediary_supplier_id", sa.String(32), nullable=True),
        sa.Column("cashier", sa.String(120), nullable=True),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("exchange_rate", sa.Float(), nullable=False, server_default=sa.text("1")),
        sa.Column("subtotal", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_discount", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount_base", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_of_goods_base", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["original_invoice_id"], ["sale_invoices.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["intermediary_supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("sale_invoices", schema=None) as batch_op:
        batch_op.create_index("ix_sale_invoices_type", ["type"], unique=False)
        batch_op.create_index("ix_sale_invoices_original_invoice_id", ["original_invoice_id"], unique=False)
        batch_op.create_index("ix_sale_invoices_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sale_invoices_intermediary_supplier_id", ["intermediary_supplier_id"], unique=False)
        batch_op.create_index("ix_sale_invoices_type_timestamp", ["type", "timestamp"], unique=False)

    op.create_table(
        "sale_invoice_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.String(16), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("item_type", sa.String(16), nullable=False, server_default="product"),
        sa.Column("item_id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("list_price", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("final_price", sa.Float(), nullable=True),
        sa.Column("unit_cost_base", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("source_line_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["invoice_id"], ["sale_invoices.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["source_line_id"], ["sale_invoice_lines.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_invoice_lines", schema=None) as batch_op:
        batch_op.create_index("ix_sale_invoice_lines_invoice_id", ["invoice_id"], unique=False)
        batch_op.create_index("ix_sale_invoice_lines_item_id", ["item_id"], unique=False)
        batch_op.create_index("ix_sale_invoice_lines_source_line_id", ["source_line_id"], unique=False)

    op.create_table(
        "sale_line_deductions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("line_id", sa.Integer(), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("batch_id", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["line_id"], ["sale_invoice_lines.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_line_deductions", schema=None) as batch_op:
        batch_op.create_index("ix_sale_line_deductions_line_id", ["line_id"], unique=False)
        batch_op.create_index("ix_sale_line_deductions_batch_id", ["batch_id"], unique=False)

    op.create_table(
        "purchase_invoices",
        sa.Column("id", sa.String(16), nullable=False),
        sa.Column("type", sa.String(16), nullable=False, server_default="purchase"),
        sa.Column("original_invoice_id", sa.String(16), nullable=True),
        sa.Column("supplier_id", sa.String(32), nullable=False),
        sa.Column("invoice_number", sa.String(64), nullable=True),
        sa.Column("currency", sa.String(8), nullable=False),
        sa.Column("exchange_rate", sa.Float(), nullable=False, server_default=sa.text("1")),
        sa.Column("total_amount", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount_base", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("additional_cost", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_description", sa.String(255), nullable=True),
        sa.Column("source_in_transit_id", sa.String(16), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["original_invoice_id"], ["purchase_invoices.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.ForeignKeyConstraint(["source_in_transit_id"], ["in_transit_invoices.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("purchase_invoices", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_invoices_type", ["type"], unique=False)
        batch_op.create_index("ix_purchase_invoices_original_invoice_id", ["original_invoice_id"], unique=False)
        batch_op.create_index("ix_purchase_invoices_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_purchase_invoices_source_in_transit_id", ["source_in_transit_id"], unique=False)
        batch_op.create_index("ix_purchase_invoices_supplier_timestamp", ["supplier_id", "timestamp"], unique=False)

    op.create_table(
        "purchase_invoice_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.String(16), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(32), nullable=False),
        sa.Column("lot_number", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("unit_cost_base", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["invoice_id"], ["purchase_invoices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_invoice_lines", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_invoice_lines_invoice_id", ["invoice_id"], unique=False)
        batch_op.create_index("ix_purchase_invoice_lines_product_id", ["product_id"], unique=False)

    for table, party_column, party_table in (
        ("customer_transactions", "customer_id", "customers"),
        ("supplier_transactions", "supplier_id", "suppliers"),
        ("payroll_transactions", "employee_id", "employees"),
        ("deposit_transactions", "holder_id", "deposit_holders"),
    ):
        extra = [sa.Column("in_transit_id", sa.String(16), nullable=True)] if table == "supplier_transactions" else []
        op.create_table(
            table,
            *_transaction_columns(),
            sa.Column(party_column, sa.String(32), nullable=False),
            *extra,
            sa.ForeignKeyConstraint([party_column], [f"{party_table}.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(f"ix_{table}_{party_column}", [party_column], unique=False)
            batch_op.create_index(f"ix_{table}_type", ["type"], unique=False)
            batch_op.create_index(f"ix_{table}_invoice_id", ["invoice_id"], unique=False)
            if extra:
                batch_op.create_index(f"ix_{table}_in_transit_id", ["in_transit_id"], unique=False)

    op.create_table(
        "expenses",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("invoice_id", sa.String(16), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("expenses", schema=None) as batch_op:
        batch_op.create_index("ix_expenses_category", ["category"], unique=False)
        batch_op.create_index("ix_expenses_invoice_id", ["invoice_id"], unique=False)

    op.create_table(
        "store_settings",
        sa.Column("id", sa.String(16), nullable=False),
        sa.Column("store_name", sa.String(255), nullable=True),
        sa.Column("base_currency", sa.String(8), nullable=False),
        sa.Column("currency_configs", sa.JSON(), nullable=False),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("expiry_threshold_months", sa.Integer(), nullable=False, server_default=sa.text("3")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "edit_pointers",
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("invoice_id", sa.String(16), nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("kind"),
    )


def downgrade():
    op.drop_table("edit_pointers")
    op.drop_table("store_settings")
    op.drop_table("expenses")
    for table in ("deposit_transactions", "payroll_transactions", "supplier_transactions", "customer_transactions"):
        op.drop_table(table)
    op.drop_table("purchase_invoice_lines")
    op.drop_table("purchase_invoices")
    op.drop_table("sale_line_deductions")
    op.drop_table("sale_invoice_lines")
    op.drop_table("sale_invoices")
    op.drop_table("in_transit_lines")
    op.drop_table("in_transit_invoices")
    op.drop_table("deposit_holders")
    op.drop_table("employees")
    op.drop_table("suppliers")
    op.drop_table("customers")
    op.drop_table("services")
    op.drop_table("batches")
    op.drop_table("products")
