"""
Transactional e-mail through the Resend HTTP API.
Callers decide whether a delivery failure is fatal; the helpers here only raise.
"""
import html
import logging
from urllib.parse import urlsplit

import requests
from django.conf import settings

from .exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)

RESEND_API_URL = 'https://api.resend.com/emails'
DEFAULT_APP_URL = 'http://localhost:3000'
DEFAULT_EMAIL_FROM = 'Liver Manager <noreply@resend.dev>'
REQUEST_TIMEOUT = 10


def escape_html(value):
    return html.escape(str(value), quote=True).replace('&#x27;', '&#039;')


def get_valid_app_url():
    """Origin of APP_URL, or localhost when it is missing or not http(s)"""
    raw_url = getattr(settings, 'APP_URL', None) or DEFAULT_APP_URL
    try:
        parts = urlsplit(raw_url)
    except ValueError:
        return DEFAULT_APP_URL
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        return DEFAULT_APP_URL
    return f"{parts.scheme}://{parts.netloc}"


def wrap_email_layout(body_html):
    return f"""
<div style="background-color:#f3f4f6;padding:32px 0;font-family:'Hiragino Sans','Noto Sans JP',sans-serif;">
  <div style="max-width:560px;margin:0 auto;background-color:#ffffff;border-radius:12px;padding:32px;">
    {body_html}
  </div>
  <p style="text-align:center;color:#9ca3af;font-size:12px;margin-top:16px;">
    このメールは送信専用アドレスから送信されています。
  </p>
</div>
"""


def send_email(to, subject, html_body):
    """
    Send a message through Resend.

    Raises:
        EmailDeliveryError: missing configuration, transport failure or a
            non-2xx response from the provider
    """
    api_key = getattr(settings, 'RESEND_API_KEY', '')
    if not api_key:
        raise EmailDeliveryError('RESEND_API_KEY is not configured')

    recipients = to if isinstance(to, (list, tuple)) else [to]
    payload = {
        'from': getattr(settings, 'EMAIL_FROM', '') or DEFAULT_EMAIL_FROM,
        'to': list(recipients),
        'subject': subject,
        'html': html_body,
    }
    try:
        response = requests.post(
            RESEND_API_URL,
            json=payload,
            headers={'Authorization': f'Bearer {api_key}'},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        raise EmailDeliveryError(f'Email request failed: {e}') from e

    if not response.ok:
        raise EmailDeliveryError(f'Email provider returned {response.status_code}: {response.text[:200]}')
    logger.info(f"Sent email '{subject}' to {len(recipients)} recipient(s)")


def send_registration_email(email, temp_password, agency_name):
    app_url = get_valid_app_url()
    body = f"""
<h2>代理店登録通知</h2>
<p>{escape_html(agency_name)} 様</p>
<p>Liver Managerへの代理店登録が完了しました。</p>
<p>以下の情報でログインしてください。</p>
<ul>
  <li><strong>メールアドレス:</strong> {escape_html(email)}</li>
  <li><strong>仮パスワード:</strong> {escape_html(temp_password)}</li>
</ul>
<p><a href="{app_url}/login">ログインはこちら</a></p>
<p>初回ログイン後、パスワードの変更をお勧めします。</p>
"""
    send_email(email, '代理店登録通知', wrap_email_layout(body))


def send_password_reset_email(email, reset_link):
    body = f"""
<h2 style="margin:0 0 24px;color:#111827;font-size:20px;">パスワードリセット</h2>
<p>{escape_html(email)} 様</p>
<p>パスワードリセットのリクエストを受け付けました。</p>
<p>以下のリンクから新しいパスワードを設定してください。</p>
<p style="text-align:center;margin:28px 0;">
  <a href="{escape_html(reset_link)}" style="background-color:#0f172a;color:#ffffff;padding:14px 40px;border-radius:8px;text-decoration:none;">パスワードをリセットする</a>
</p>
<p style="color:#6b7280;font-size:13px;">心当たりがない場合は、このメールを無視してください。</p>
"""
    send_email(email, '【Liver Manager】パスワードリセット', wrap_email_layout(body))


def send_invoice_notification_email(agency_name, invoice_number, total_jpy, data_month):
    admin_email = (
        getattr(settings, 'ADMIN_EMAIL', '')
        or getattr(settings, 'EMAIL_FROM', '')
        or 'noreply@resend.dev'
    )
    month_label = data_month or '未指定'
    body = f"""
<h2>請求書送付通知</h2>
<p>以下の請求書が作成・送付されました。</p>
<ul>
  <li><strong>代理店名:</strong> {escape_html(agency_name)}</li>
  <li><strong>請求書番号:</strong> {escape_html(invoice_number)}</li>
  <li><strong>対象月:</strong> {escape_html(month_label)}</li>
  <li><strong>合計金額:</strong> {int(total_jpy):,}円（税込）</li>
</ul>
<p><a href="{get_valid_app_url()}/invoices">請求書一覧を確認する</a></p>
"""
    send_email(admin_email, f'請求書送付通知: {agency_name} ({month_label})', wrap_email_layout(body))
