"""
Shared choices and business constants
"""
from datetime import date
from decimal import Decimal

ROLE_SYSTEM_ADMIN = 'system_admin'
ROLE_AGENCY_USER = 'agency_user'

USER_ROLE_CHOICES = [
    (ROLE_SYSTEM_ADMIN, 'システム管理者'),
    (ROLE_AGENCY_USER, '代理店ユーザー'),
]

STATUS_COMPLETED = 'completed'
STATUS_RELEASED = 'released'
STATUS_AUTHORIZED = 'authorized'
STATUS_PENDING = 'pending'
STATUS_REJECTED = 'rejected'

# Shared by livers and applications
STATUS_CHOICES = [
    (STATUS_COMPLETED, '完了'),
    (STATUS_RELEASED, '解除'),
    (STATUS_AUTHORIZED, '権限付与'),
    (STATUS_PENDING, '未承諾'),
    (STATUS_REJECTED, '否認'),
]

AGENCY_RANK_CHOICES = [
    ('rank_2', '2次代理店'),
    ('rank_3', '3次代理店'),
    ('rank_4', '4次代理店'),
]

FORM_TAB_AFFILIATION_CHECK = 'affiliation_check'

FORM_TAB_CHOICES = [
    (FORM_TAB_AFFILIATION_CHECK, '紐付け申請（事務所所属チェック）'),
    ('million_special', '100万人以上特別申請'),
    ('streaming_auth', '配信権限付与'),
    ('subscription_cancel', 'サブスク解除申請'),
    ('account_id_change', 'アカウントID変更'),
    ('event_build', 'イベント構築申請'),
    ('special_referral', '特別送客申請'),
    ('objection', '事務所用 異議申し立て'),
]

REVENUE_TASK_CHOICES = [
    ('task_1', 'タスク1'),
    ('task_2', 'タスク2'),
    ('task_3', 'タスク3'),
    ('task_4', 'タスク4'),
    ('task_5', 'タスク5'),
    ('task_6_plus', 'タスク6以上'),
]

BANK_ACCOUNT_TYPE_CHOICES = [
    ('futsu', '普通'),
    ('toza', '当座'),
]

# Dashboard gross-up multiplier (10% consumption tax)
TAX_RATE = Decimal('1.1')
# Invoice consumption tax
CONSUMPTION_TAX_RATE = Decimal('0.10')

MIN_EXCHANGE_RATE = Decimal('50')
MAX_EXCHANGE_RATE = Decimal('500')

CSV_MAX_ROWS = 10000
CSV_INSERT_BATCH_SIZE = 500

INVOICE_NUMBER_MAX_RETRIES = 3

# Input-tax credit for invoices from issuers that are not registered
# (transitional measures): (applies before this date, deductible rate)
DEDUCTIBLE_RATE_SCHEDULE = [
    (date(2026, 10, 1), Decimal('0.8')),
    (date(2029, 10, 1), Decimal('0.5')),
]
DEDUCTIBLE_RATE_REGISTERED = Decimal('1.0')
DEDUCTIBLE_RATE_FINAL = Decimal('0.0')

TEMP_PASSWORD_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789'
TEMP_PASSWORD_LENGTH = 12

JPY = Decimal('0.01')
