"""
A4 invoice PDF renderer.
Draws the page with Pillow and embeds a Code128 barcode of the invoice
number generated with python-barcode, then saves the page(s) as PDF.
"""
import io
import logging
import os
from decimal import Decimal

import barcode
from barcode.writer import ImageWriter
from django.conf import settings
from django.utils import timezone
from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

DPI = 150
PAGE_WIDTH_MM = 210
PAGE_HEIGHT_MM = 297
MARGIN_MM = 20
FOOTER_Y_MM = PAGE_HEIGHT_MM - 12

DEFAULT_RECIPIENT_NAME = '株式会社KIKIYO'
DEFAULT_CREATOR_NAME = 'KIKIYO LIVE MANAGER'

FONT_FILES = {
    'regular': ['NotoSansJP-Regular.ttf', '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf'],
    'bold': ['NotoSansJP-Bold.ttf', '/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf'],
}

ACCOUNT_TYPE_LABELS = {'futsu': '普通', 'toza': '当座'}


def mm(value):
    return int(round(value * DPI / 25.4))


def pt(size):
    """Font size in points to pixels at the page DPI"""
    return int(round(size * DPI / 72))


_font_cache = {}


def get_font(size, weight='regular'):
    key = (size, weight)
    if key in _font_cache:
        return _font_cache[key]

    font_dir = getattr(settings, 'INVOICE_FONT_DIR', '')
    font = None
    for name in FONT_FILES[weight]:
        path = name if os.path.isabs(name) else os.path.join(font_dir, name)
        if not os.path.exists(path):
            continue
        try:
            font = ImageFont.truetype(path, pt(size))
            break
        except (OSError, IOError):
            logger.warning(f"Could not load font {path}")
    if font is None:
        font = ImageFont.load_default(size=pt(size))
    _font_cache[key] = font
    return font


def format_currency(amount):
    return f"¥{int(Decimal(amount).quantize(Decimal('1'))):,}"


def format_date(value):
    if value is None:
        return '-'
    if hasattr(value, 'hour'):
        value = timezone.localtime(value)
    return f"{value.year}年{value.month}月{value.day}日"


def format_percent(rate, places=0):
    return f"{Decimal(rate) * 100:.{places}f}%"


class InvoiceCanvas:
    """Pillow pages addressed in millimetres"""

    def __init__(self):
        self.pages = []
        self.new_page()

    def new_page(self):
        self.image = Image.new('RGB', (mm(PAGE_WIDTH_MM), mm(PAGE_HEIGHT_MM)), color='white')
        self.draw = ImageDraw.Draw(self.image)
        self.pages.append(self.image)

    def text_width(self, text, font):
        bbox = self.draw.textbbox((0, 0), text, font=font)
        return (bbox[2] - bbox[0]) * 25.4 / DPI

    def text(self, x, y, text, size=9, weight='regular', align='left', fill=(0, 0, 0)):
        """Draw text with its baseline at y"""
        font = get_font(size, weight)
        anchor = {'left': 'ls', 'right': 'rs', 'center': 'ms'}[align]
        self.draw.text((mm(x), mm(y)), text, font=font, fill=fill, anchor=anchor)
        return font

    def rect(self, x, y, w, h, fill=None, outline=(80, 80, 80), width=0.3):
        self.draw.rectangle(
            [mm(x), mm(y), mm(x + w), mm(y + h)],
            fill=fill, outline=outline, width=max(1, mm(width)),
        )

    def line(self, x1, y1, x2, y2, fill=(40, 40, 40), width=0.3):
        self.draw.line([mm(x1), mm(y1), mm(x2), mm(y2)], fill=fill, width=max(1, mm(width)))

    def paste(self, image, x, y):
        self.image.paste(image, (mm(x), mm(y)))

    def to_pdf(self, title=''):
        buffer = io.BytesIO()
        first, rest = self.pages[0], self.pages[1:]
        first.save(buffer, format='PDF', resolution=DPI, save_all=True, append_images=rest, title=title)
        for page in self.pages:
            page.close()
        return buffer.getvalue()


def render_barcode(value, width_mm, height_mm):
    """Code128 image of value scaled to the given box"""
    code128 = barcode.get_barcode_class('code128')
    barcode_img = code128(value, writer=ImageWriter()).render({
        'write_text': False,
        'module_width': 0.3,
        'module_height': 12.0,
        'quiet_zone': 1.0,
        'background': 'white',
        'foreground': 'black',
    })
    return barcode_img.resize((mm(width_mm), mm(height_mm)), Image.Resampling.BILINEAR)


def draw_label_table(canvas, x, y, label_width, value_width, row_height, rows):
    """Two-column table with shaded label cells, values right-aligned"""
    for index, (label, value) in enumerate(rows):
        row_y = y + index * row_height
        canvas.rect(x, row_y, label_width, row_height, fill=(245, 245, 245))
        canvas.rect(x + label_width, row_y, value_width, row_height)
        canvas.text(x + 4, row_y + row_height / 2 + 1.2, label, size=9)
        canvas.text(x + label_width + value_width - 4, row_y + row_height / 2 + 1.2, value, size=9, align='right')
    canvas.rect(x, y, label_width + value_width, len(rows) * row_height, width=0.5)


def render_invoice_pdf(invoice):
    """Render an issued invoice as A4 PDF bytes"""
    recipient_name = getattr(settings, 'INVOICE_RECIPIENT_NAME', '') or DEFAULT_RECIPIENT_NAME
    creator_name = getattr(settings, 'INVOICE_CREATOR_NAME', '') or DEFAULT_CREATOR_NAME

    canvas = InvoiceCanvas()
    right = PAGE_WIDTH_MM - MARGIN_MM
    content_width = PAGE_WIDTH_MM - 2 * MARGIN_MM
    center = PAGE_WIDTH_MM / 2
    grey = (80, 80, 80)
    warning = (150, 80, 0)

    # Number, issue date and barcode
    y = 18
    canvas.text(right, y, f"No. {invoice.invoice_number}", size=8.5, align='right', fill=grey)
    y += 5
    canvas.text(right, y, f"発行日: {format_date(invoice.sent_at or invoice.created_at)}",
                size=8.5, align='right', fill=grey)
    try:
        canvas.paste(render_barcode(invoice.invoice_number, 50, 9), MARGIN_MM, 12)
    except Exception as e:
        logger.error(f"Barcode generation failed for '{invoice.invoice_number}': {e}")
        canvas.text(MARGIN_MM, 18, invoice.invoice_number, size=8.5, fill=grey)

    # Title
    y += 10
    canvas.text(center, y, '請  求  書', size=22, weight='bold', align='center')
    y += 3
    canvas.line(center - 28, y, center + 28, y, width=0.8)

    # Recipient (left)
    y += 14
    top = y
    canvas.text(MARGIN_MM, y, recipient_name, size=14, weight='bold')
    name_width = canvas.text_width(recipient_name, get_font(14, 'bold'))
    canvas.text(MARGIN_MM + name_width + 3, y, '御中', size=11)
    y += 6
    underline = max(name_width + 3 + canvas.text_width('御中', get_font(11)) + 2, 70)
    canvas.line(MARGIN_MM, y - 2, MARGIN_MM + underline, y - 2, width=0.5)

    # Issuer (right)
    issuer_y = top
    canvas.text(right, issuer_y, invoice.agency_name, size=10, weight='bold', align='right')
    issuer_y += 5
    if invoice.agency_address:
        canvas.text(right, issuer_y, invoice.agency_address, size=8.5, align='right')
        issuer_y += 4.5
    if invoice.agency_representative:
        canvas.text(right, issuer_y, f"代表者: {invoice.agency_representative}", size=8.5, align='right')
        issuer_y += 4.5
    if invoice.is_invoice_registered and invoice.invoice_registration_number:
        canvas.text(right, issuer_y, f"登録番号: {invoice.invoice_registration_number}", size=8.5, align='right')
    else:
        canvas.text(right, issuer_y, '※適格請求書発行事業者 未登録', size=8.5, align='right', fill=warning)

    # Amount box
    y = max(y, issuer_y) + 12
    box_height = 16
    canvas.draw.rounded_rectangle(
        [mm(MARGIN_MM), mm(y), mm(right), mm(y + box_height)],
        radius=mm(2), fill=(240, 245, 255), outline=(60, 100, 180), width=mm(0.6),
    )
    canvas.text(MARGIN_MM + 8, y + box_height / 2 + 1.5, 'ご請求金額（税込）', size=10)
    canvas.text(right - 8, y + box_height / 2 + 2.5, f"{format_currency(invoice.total_jpy)}-",
                size=18, weight='bold', align='right')

    # Transaction details
    y += box_height + 10
    details = [
        f"対象期間: {invoice.data_month or '-'}",
        f"為替レート: {Decimal(invoice.exchange_rate):.2f} 円/USD",
        f"手数料率: {format_percent(invoice.commission_rate, 1)}",
    ]
    canvas.text(MARGIN_MM, y, '　　'.join(details), size=8.5, fill=(60, 60, 60))

    # Line table
    y += 10
    label_width = content_width * 0.6
    amount_width = content_width * 0.4
    row_height = 8
    table_top = y
    canvas.rect(MARGIN_MM, y, content_width, row_height, fill=(50, 55, 65), outline=(50, 55, 65))
    canvas.text(MARGIN_MM + 4, y + 5.2, '品　目', size=9, weight='bold', fill=(255, 255, 255))
    canvas.text(right - 4, y + 5.2, '金　額', size=9, weight='bold', align='right', fill=(255, 255, 255))
    y += row_height

    tax_label = f"消費税（{format_percent(invoice.tax_rate)}）"
    for label, amount in (('代理店報酬（税抜）', invoice.subtotal_jpy), (tax_label, invoice.tax_amount_jpy)):
        canvas.rect(MARGIN_MM, y, label_width, row_height, outline=(180, 180, 180))
        canvas.rect(MARGIN_MM + label_width, y, amount_width, row_height, outline=(180, 180, 180))
        canvas.text(MARGIN_MM + 4, y + 5.2, label, size=9)
        canvas.text(right - 4, y + 5.2, format_currency(amount), size=9, align='right')
        y += row_height

    total_height = row_height + 2
    canvas.rect(MARGIN_MM, y, label_width, total_height, fill=(245, 245, 245), outline=(180, 180, 180))
    canvas.rect(MARGIN_MM + label_width, y, amount_width, total_height, fill=(245, 245, 245), outline=(180, 180, 180))
    canvas.text(MARGIN_MM + 4, y + 6.2, '合計（税込）', size=10, weight='bold')
    canvas.text(right - 4, y + 6.2, format_currency(invoice.total_jpy), size=10, weight='bold', align='right')
    y += total_height
    canvas.rect(MARGIN_MM, table_top, content_width, y - table_top, outline=(50, 55, 65), width=0.5)

    # Tax breakdown
    y += 8
    canvas.text(MARGIN_MM, y, '【消費税の内訳】', size=8.5, weight='bold')
    y += 5
    canvas.text(
        MARGIN_MM + 2, y,
        f"{format_percent(invoice.tax_rate)}対象額: {format_currency(invoice.subtotal_jpy)}"
        f"　　消費税額: {format_currency(invoice.tax_amount_jpy)}",
        size=8,
    )

    # Transitional-measure notice for unregistered issuers
    if not invoice.is_invoice_registered:
        y += 8
        canvas.text(MARGIN_MM, y, '※本請求書は適格請求書ではありません。', size=7.5, fill=warning)
        y += 4
        canvas.text(
            MARGIN_MM, y,
            f"　経過措置により仕入税額控除の{format_percent(invoice.deductible_rate)}が控除可能です。",
            size=7.5, fill=warning,
        )

    # Bank details
    bank_rows = [
        (label, value) for label, value in (
            ('銀行名', invoice.bank_name),
            ('支店名', invoice.bank_branch),
            ('口座種別', ACCOUNT_TYPE_LABELS.get(invoice.bank_account_type, '-') if invoice.bank_account_type else ''),
            ('口座番号', invoice.bank_account_number),
            ('口座名義', invoice.bank_account_holder),
        ) if value
    ]

    y += 10
    if y + 8 + 5 + len(bank_rows) * 7 + 10 > FOOTER_Y_MM:
        canvas.new_page()
        y = 20
    canvas.line(MARGIN_MM, y, right, y, fill=(180, 180, 180))

    y += 8
    canvas.text(MARGIN_MM, y, '【お振込先】', size=9, weight='bold')
    y += 5
    if bank_rows:
        draw_label_table(canvas, MARGIN_MM, y, 35, 80, 7, bank_rows)
        y += len(bank_rows) * 7 + 5
    canvas.text(MARGIN_MM, y, '※振込手数料はお客様にてご負担ください。', size=7.5, fill=(100, 100, 100))

    for page in canvas.pages:
        ImageDraw.Draw(page).text(
            (mm(center), mm(FOOTER_Y_MM)), f"{creator_name} により作成",
            font=get_font(7), fill=(160, 160, 160), anchor='ms',
        )

    return canvas.to_pdf(title=f"請求書 {invoice.invoice_number}")
