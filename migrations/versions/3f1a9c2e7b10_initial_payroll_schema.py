"""initial payroll schema (tenancy, auth, employment, salary, leave, commission, cycles, exits)

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.BigInteger(), nullable=False, server_default='0')


def upgrade() -> None:
    # ---- tenancy / auth ----
    op.create_table(
        'businesses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=50), nullable=False, unique=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20)),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='SET NULL')),
        sa.Column('last_login_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=50), nullable=False, unique=True),
        sa.Column('label', sa.String(length=120)),
    )
    op.create_table(
        'user_roles',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('granted_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'staff',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), unique=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('email', sa.String(length=255)),
        sa.Column('phone', sa.String(length=20)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_staff_business_id', 'staff', ['business_id'])

    # ---- employment ----
    op.create_table(
        'employment_profiles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('staff_id', sa.Integer(), sa.ForeignKey('staff.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('employee_code', sa.String(length=32)),
        sa.Column('employment_type', sa.Enum('full_time', 'part_time', 'contract', 'freelancer',
                                             name='employment_type_enum'), nullable=False),
        sa.Column('compensation_model', sa.Enum('fixed_salary', 'hourly', 'commission_only', 'salary_plus_commission',
                                                name='compensation_model_enum'), nullable=False),
        sa.Column('status', sa.Enum('active', 'on_leave', 'notice_period', 'resigned', 'terminated',
                                    name='employment_status_enum'), nullable=False),
        sa.Column('joining_date', sa.Date()),
        sa.Column('probation_end_date', sa.Date()),
        sa.Column('contract_start_date', sa.Date()),
        sa.Column('contract_end_date', sa.Date()),
        sa.Column('notice_period_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('preferred_payout_method', sa.Enum('bank_transfer', 'upi', 'cash', name='payout_method_enum'),
                  nullable=False),
        sa.Column('bank_account_name', sa.String(length=120)),
        sa.Column('bank_account_number', sa.String(length=34)),
        sa.Column('bank_ifsc_code', sa.String(length=11)),
        sa.Column('bank_name', sa.String(length=120)),
        sa.Column('upi_id', sa.String(length=120)),
        sa.Column('pan_number', sa.String(length=10)),
        sa.Column('aadhar_number', sa.String(length=12)),
        sa.Column('pf_number', sa.String(length=32)),
        sa.Column('esi_number', sa.String(length=32)),
        sa.Column('onboarding_checklist', sa.JSON(), nullable=False),
        sa.Column('onboarding_status', sa.Enum('pending', 'in_progress', 'complete', name='onboarding_status_enum'),
                  nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('staff_id', 'business_id', name='uq_employment_profile_staff_business'),
    )
    op.create_index('ix_employment_profiles_business_id', 'employment_profiles', ['business_id'])
    op.create_index('ix_employment_profiles_staff_id', 'employment_profiles', ['staff_id'])

    op.create_table(
        'salary_components',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('employment_profile_id', sa.Integer(),
                  sa.ForeignKey('employment_profiles.id', ondelete='RESTRICT'), nullable=False),
        _money('base_salary_paisa'),
        _money('hourly_rate_paisa'),
        _money('daily_rate_paisa'),
        _money('hra_allowance_paisa'),
        _money('travel_allowance_paisa'),
        _money('meal_allowance_paisa'),
        _money('other_allowances_paisa'),
        _money('pf_deduction_paisa'),
        _money('esi_deduction_paisa'),
        _money('professional_tax_paisa'),
        _money('tds_deduction_paisa'),
        sa.Column('payout_frequency', sa.Enum('weekly', 'bi_weekly', 'monthly', name='payout_frequency_enum'),
                  nullable=False),
        sa.Column('payout_day_of_month', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('overtime_rate_multiplier', sa.Numeric(4, 2), nullable=False, server_default='1.50'),
        sa.Column('weekly_work_hours', sa.Integer(), nullable=False, server_default='48'),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('effective_to', sa.Date()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_index('ix_salary_components_business_id', 'salary_components', ['business_id'])
    op.create_index('ix_salary_components_employment_profile_id', 'salary_components', ['employment_profile_id'])
    op.create_index('ix_salary_component_window', 'salary_components',
                    ['employment_profile_id', 'effective_from', 'effective_to'])
    op.create_index('uq_salary_component_active_profile', 'salary_components', ['employment_profile_id'],
                    unique=True,
                    postgresql_where=sa.text('is_active'),
                    sqlite_where=sa.text('is_active = 1'))

    # ---- leave ----
    op.create_table(
        'leave_types',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('annual_quota', sa.Integer(), nullable=False, server_default='12'),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('allow_carry_forward', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('max_carry_forward_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('allow_encashment', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('encashment_rate_pct', sa.Numeric(5, 2), nullable=False, server_default='100'),
        sa.Column('min_encashment_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('business_id', 'code', name='uq_leave_type_business_code'),
    )
    op.create_index('ix_leave_types_business_id', 'leave_types', ['business_id'])

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('staff_id', sa.Integer(), sa.ForeignKey('staff.id', ondelete='CASCADE'), nullable=False),
        sa.Column('leave_type_id', sa.Integer(), sa.ForeignKey('leave_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('allocated_days', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('carried_forward_days', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('used_days', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('staff_id', 'leave_type_id', 'year', name='uq_staff_leave_balance_year'),
    )
    op.create_index('ix_leave_balances_business_id', 'leave_balances', ['business_id'])
    op.create_index('ix_leave_balances_staff_id', 'leave_balances', ['staff_id'])
    op.create_index('ix_leave_balances_leave_type_id', 'leave_balances', ['leave_type_id'])

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id'), nullable=False),
        sa.Column('staff_id', sa.Integer(), sa.ForeignKey('staff.id', ondelete='CASCADE'), nullable=False),
        sa.Column('leave_type_id', sa.Integer(), sa.ForeignKey('leave_types.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('leave_balance_id', sa.Integer(), sa.ForeignKey('leave_balances.id', ondelete='SET NULL')),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('is_half_day', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('half_day_type', sa.Enum('first_half', 'second_half', name='half_day_type_enum')),
        sa.Column('number_of_days', sa.Numeric(6, 2), nullable=False),
        sa.Column('reason', sa.Text()),
        sa.Column('status', sa.Enum('pending', 'approved', 'rejected', 'cancelled', name='leave_request_status_enum'),
                  nullable=False),
        sa.Column('is_paid', sa.Boolean(), nullable=False),
        sa.Column('requested_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('approved_at', sa.DateTime()),
        sa.Column('rejection_reason', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.CheckConstraint('start_date <= end_date', name='ck_leave_request_range'),
    )
    op.create_index('ix_leave_requests_business_id', 'leave_requests', ['business_id'])
    op.create_index('ix_leave_requests_staff_id', 'leave_requests', ['staff_id'])

    op.create_table(
        'leave_approval_actions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('leave_request_id', sa.Integer(), sa.ForeignKey('leave_requests.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('action', sa.String(length=20), nullable=False),
        sa.Column('comment', sa.Text()),
        sa.Column('acted_by_user_id', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('acted_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_leave_approval_actions_leave_request_id', 'leave_approval_actions', ['leave_request_id'])

    # ---- commission ----
    op.create_table(
        'commission_structures',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('type', sa.Enum('flat', 'percentage', 'tiered', name='commission_type_enum'), nullable=False),
        sa.Column('service_category', sa.String(length=60)),
        sa.Column('base_flat_amount_paisa', sa.BigInteger()),
        sa.Column('base_percentage', sa.Numeric(5, 2)),
        sa.Column('tiers', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('business_id', 'name', name='uq_commission_structure_business_name'),
    )
    op.create_index('ix_commission_structures_business_id', 'commission_structures', ['business_id'])

    op.create_table(
        'staff_commission_assignments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('staff_id', sa.Integer(), sa.ForeignKey('staff.id', ondelete='CASCADE'), nullable=False,
                  unique=True),
        sa.Column('structure_id', sa.Integer(), sa.ForeignKey('commission_structures.id', ondelete='RESTRICT'),
                  nullable=False),
        sa.Column('assigned_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_staff_commission_assignments_business_id', 'staff_commission_assignments', ['business_id'])
    op.create_index('ix_staff_commission_assignments_structure_id', 'staff_commission_assignments',
                    ['structure_id'])

    op.create_table(
        'completed_services',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('staff_id', sa.Integer(), sa.ForeignKey('staff.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_name', sa.String(length=160)),
        sa.Column('service_category', sa.String(length=60)),
        sa.Column('service_value_paisa', sa.BigInteger(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=False),
        sa.Column('external_ref', sa.String(length=64)),
    )
    op.create_index('ix_completed_services_business_id', 'completed_services', ['business_id'])
    op.create_index('ix_completed_services_staff_time', 'completed_services', ['staff_id', 'completed_at'])

    # ---- cycles ----
    op.create_table(
        'payroll_cycles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('period_year', sa.Integer(), nullable=False),
        sa.Column('period_month', sa.Integer(), nullable=False),
        sa.Column('period_start_date', sa.Date(), nullable=False),
        sa.Column('period_end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('draft', 'processed', 'approved', 'paid', name='payroll_cycle_status_enum'),
                  nullable=False),
        sa.Column('total_staff_count', sa.Integer(), nullable=False, server_default='0'),
        _money('total_gross_salary_paisa'),
        _money('total_commissions_paisa'),
        _money('total_deductions_paisa'),
        _money('total_net_payable_paisa'),
        sa.Column('processing_notes', sa.JSON()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('processed_at', sa.DateTime()),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('approved_at', sa.DateTime()),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('paid_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
        sa.UniqueConstraint('business_id', 'period_year', 'period_month', name='uq_payroll_cycle_business_period'),
        sa.CheckConstraint('period_month BETWEEN 1 AND 12', name='ck_payroll_cycle_month'),
    )
    op.create_index('ix_payroll_cycles_business_id', 'payroll_cycles', ['business_id'])

    op.create_table(
        'payroll_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('payroll_cycle_id', sa.Integer(), sa.ForeignKey('payroll_cycles.id', ondelete='RESTRICT'),
                  nullable=False),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('staff_id', sa.Integer(), sa.ForeignKey('staff.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('employment_profile_id', sa.Integer(), sa.ForeignKey('employment_profiles.id'), nullable=False),
        sa.Column('salary_component_id', sa.Integer(), sa.ForeignKey('salary_components.id'), nullable=False),
        _money('base_salary_paisa'),
        _money('allowances_paisa'),
        _money('gross_earnings_paisa'),
        _money('commission_paisa'),
        sa.Column('unpaid_leave_days', sa.Numeric(6, 2), nullable=False, server_default='0'),
        _money('leave_deduction_paisa'),
        _money('total_deductions_paisa'),
        _money('net_payable_paisa'),
        sa.Column('payment_status', sa.Enum('pending', 'paid', 'failed', name='payment_status_enum'), nullable=False),
        sa.Column('paid_at', sa.DateTime()),
        sa.Column('calc_meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('payroll_cycle_id', 'staff_id', name='uq_payroll_entry_cycle_staff'),
    )
    op.create_index('ix_payroll_entries_payroll_cycle_id', 'payroll_entries', ['payroll_cycle_id'])
    op.create_index('ix_payroll_entries_staff_id', 'payroll_entries', ['staff_id'])

    # ---- exits ----
    op.create_table(
        'exit_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('staff_id', sa.Integer(), sa.ForeignKey('staff.id', ondelete='RESTRICT'), nullable=False,
                  unique=True),
        sa.Column('employment_profile_id', sa.Integer(), sa.ForeignKey('employment_profiles.id')),
        sa.Column('exit_type', sa.Enum('resignation', 'termination', 'retirement', 'contract_end', 'absconding',
                                       name='exit_type_enum'), nullable=False),
        sa.Column('exit_reason', sa.Text()),
        sa.Column('resignation_date', sa.Date(), nullable=False),
        sa.Column('last_working_date', sa.Date(), nullable=False),
        sa.Column('notice_period_served', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notice_period_shortfall', sa.Integer(), nullable=False, server_default='0'),
        _money('pending_commissions_paisa'),
        _money('pending_tips_paisa'),
        _money('leave_encashment_paisa'),
        _money('net_settlement_paisa'),
        sa.Column('settlement_status', sa.Enum('pending', 'completed', name='settlement_status_enum'),
                  nullable=False),
        sa.Column('settled_at', sa.DateTime()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_index('ix_exit_records_business_id', 'exit_records', ['business_id'])


def downgrade() -> None:
    for table in (
        'exit_records', 'payroll_entries', 'payroll_cycles',
        'completed_services', 'staff_commission_assignments', 'commission_structures',
        'leave_approval_actions', 'leave_requests', 'leave_balances', 'leave_types',
        'salary_components', 'employment_profiles',
        'staff', 'user_roles', 'roles', 'users', 'businesses',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_name in (
        'settlement_status_enum', 'exit_type_enum', 'payment_status_enum', 'payroll_cycle_status_enum',
        'commission_type_enum', 'leave_request_status_enum', 'half_day_type_enum', 'payout_frequency_enum',
        'onboarding_status_enum', 'payout_method_enum', 'employment_status_enum', 'compensation_model_enum',
        'employment_type_enum',
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
