"""create_payment_pipeline_tables

Revision ID: 3c1f9a7d2b64
Revises:
Create Date: 2026-03-10 09:42:11.208314

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f9a7d2b64'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 规格库存
    op.create_table(
        'product_variants',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False, comment='SKU'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0', comment='实物库存'),
        sa.Column('reserved_stock', sa.Integer(), nullable=False, server_default='0', comment='已占用库存'),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=True, comment='低库存阈值（空则用全局默认）'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1', comment='版本号'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
    )

    # 订单
    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=64), nullable=False, comment='订单ID'),
        sa.Column('total_amount', sa.Numeric(precision=15, scale=2), nullable=False, comment='订单总额'),
        sa.Column('paid_amount', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0', comment='已付金额'),
        sa.Column('balance_due', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0', comment='待付金额'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='unpaid',
                  comment='支付状态: unpaid/partial/paid/refunded'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending',
                  comment='订单状态: pending/processing/confirmed/shipped/delivered/cancelled/returned'),
        sa.Column('inventory_state', sa.String(length=20), nullable=False, server_default='reserved',
                  comment='库存占用状态: reserved/sold/released'),
        sa.Column('payment_intent_reference', sa.String(length=200), nullable=True, comment='渠道会话/意图ID'),
        sa.Column('customer_name', sa.String(length=200), nullable=False, server_default='', comment='客户姓名'),
        sa.Column('customer_email', sa.String(length=200), nullable=True, comment='客户邮箱'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1', comment='版本号'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'], unique=False)
    op.create_index('ix_orders_status', 'orders', ['status'], unique=False)
    op.create_index('ix_orders_payment_intent_reference', 'orders', ['payment_intent_reference'], unique=False)

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('variant_id', sa.String(length=64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'], unique=False)
    op.create_index('ix_order_items_variant', 'order_items', ['variant_id'], unique=False)

    # 分期计划
    op.create_table(
        'payment_plans',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('deposit_amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('balance_due', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending',
                  comment='pending/deposit_paid/fully_paid'),
        sa.Column('deposit_paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('balance_paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
    )

    # 支付流水：成功流水按渠道交易号唯一
    op.create_table(
        'order_payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('gateway', sa.String(length=50), nullable=False, comment='支付渠道: stripe/sslcommerz'),
        sa.Column('payment_type', sa.String(length=20), nullable=False, comment='full/deposit/balance/refund'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='succeeded/failed'),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False, comment='金额（主币单位）'),
        sa.Column('currency', sa.String(length=3), nullable=False, comment='货币代码 ISO-4217'),
        sa.Column('gateway_reference', sa.String(length=200), nullable=False, comment='渠道交易号'),
        sa.Column('charge_reference', sa.String(length=200), nullable=True, comment='扣款号（退款对账用）'),
        sa.Column('metadata', sa.JSON(), nullable=True, comment='扩展元数据'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_payments_order_id', 'order_payments', ['order_id'], unique=False)
    op.create_index('ix_order_payments_created_at', 'order_payments', ['created_at'], unique=False)
    op.create_index('ix_order_payments_charge', 'order_payments', ['gateway', 'charge_reference'], unique=False)
    op.create_index(
        'uq_order_payments_succeeded_reference',
        'order_payments',
        ['gateway', 'gateway_reference'],
        unique=True,
        postgresql_where=sa.text("status = 'succeeded'"),
    )

    # 事件日志：同一自然键最多一条 processed
    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('natural_key', sa.String(length=255), nullable=False, comment='渠道事件自然键'),
        sa.Column('gateway', sa.String(length=50), nullable=False, comment='渠道'),
        sa.Column('event_type', sa.String(length=100), nullable=False, comment='事件类型'),
        sa.Column('order_id', sa.String(length=64), nullable=True, comment='关联订单'),
        sa.Column('outcome', sa.String(length=20), nullable=False, comment='processed/failed'),
        sa.Column('attempt', sa.Integer(), nullable=False, server_default='1', comment='投递次数'),
        sa.Column('result', sa.JSON(), nullable=True, comment='处理结果（审计）'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='记录时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_webhook_events_natural_key', 'webhook_events', ['natural_key'], unique=False)
    op.create_index('ix_webhook_events_order_id', 'webhook_events', ['order_id'], unique=False)
    op.create_index(
        'uq_webhook_events_processed_key',
        'webhook_events',
        ['natural_key'],
        unique=True,
        postgresql_where=sa.text("outcome = 'processed'"),
    )

    # 库存流水（只追加）
    op.create_table(
        'inventory_movements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('variant_id', sa.String(length=64), nullable=False),
        sa.Column('movement_type', sa.String(length=20), nullable=False,
                  comment='adjusted/reserved/released/sold/restocked'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量变化'),
        sa.Column('previous_stock', sa.Integer(), nullable=False),
        sa.Column('new_stock', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True, comment='备注'),
        sa.Column('actor_id', sa.String(length=64), nullable=True, comment='操作人'),
        sa.Column('order_id', sa.String(length=64), nullable=True, comment='关联订单'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_inventory_movements_order_id', 'inventory_movements', ['order_id'], unique=False)
    op.create_index('ix_inventory_movements_variant_created', 'inventory_movements',
                    ['variant_id', 'created_at'], unique=False)

    op.create_table(
        'low_stock_alerts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('variant_id', sa.String(length=64), nullable=False),
        sa.Column('available', sa.Integer(), nullable=False, comment='触发时可用库存'),
        sa.Column('threshold', sa.Integer(), nullable=False, comment='触发时阈值'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active',
                  comment='active/acknowledged/resolved'),
        sa.Column('acknowledged_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id'),
    )
    op.create_index('ix_low_stock_alerts_status', 'low_stock_alerts', ['status'], unique=False)

    # 配送单
    op.create_table(
        'delivery_shipments',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False, comment='快递: steadfast/pathao'),
        sa.Column('external_id', sa.String(length=100), nullable=True, comment='快递单号（consignment）'),
        sa.Column('tracking_id', sa.String(length=100), nullable=True, comment='追踪码'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='标准化状态'),
        sa.Column('raw_status', sa.String(length=100), nullable=True, comment='快递原始状态'),
        sa.Column('metadata', sa.JSON(), nullable=True, comment='扩展元数据'),
        sa.Column('last_checked', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_delivery_shipments_order_id', 'delivery_shipments', ['order_id'], unique=False)
    op.create_index('ix_delivery_shipments_external', 'delivery_shipments', ['provider', 'external_id'], unique=False)
    op.create_index('ix_delivery_shipments_tracking', 'delivery_shipments', ['provider', 'tracking_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_delivery_shipments_tracking', table_name='delivery_shipments')
    op.drop_index('ix_delivery_shipments_external', table_name='delivery_shipments')
    op.drop_index('ix_delivery_shipments_order_id', table_name='delivery_shipments')
    op.drop_table('delivery_shipments')

    op.drop_index('ix_low_stock_alerts_status', table_name='low_stock_alerts')
    op.drop_table('low_stock_alerts')

    op.drop_index('ix_inventory_movements_variant_created', table_name='inventory_movements')
    op.drop_index('ix_inventory_movements_order_id', table_name='inventory_movements')
    op.drop_table('inventory_movements')

    op.drop_index('uq_webhook_events_processed_key', table_name='webhook_events')
    op.drop_index('ix_webhook_events_order_id', table_name='webhook_events')
    op.drop_index('ix_webhook_events_natural_key', table_name='webhook_events')
    op.drop_table('webhook_events')

    op.drop_index('uq_order_payments_succeeded_reference', table_name='order_payments')
    op.drop_index('ix_order_payments_charge', table_name='order_payments')
    op.drop_index('ix_order_payments_created_at', table_name='order_payments')
    op.drop_index('ix_order_payments_order_id', table_name='order_payments')
    op.drop_table('order_payments')

    op.drop_table('payment_plans')

    op.drop_index('ix_order_items_variant', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('ix_orders_payment_intent_reference', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_payment_status', table_name='orders')
    op.drop_table('orders')

    op.drop_table('product_variants')
