"""
Import parser for pasted tabular text.

Pure functions only: text in, ParsedRecord values out. Persistence and
merging live in ImportService.

Layouts:
- TABLE1: number, status, amount, customer name, marketer (whitespace split)
- TABLE2: index, customer name, number, number index, contact, address,
  tracking number (tab split, multi-line addresses joined back together)
- CUSTOM: tab split in a caller-supplied column order
"""

from __future__ import annotations

import enum
import re
from dataclasses import asdict, dataclass, field
from typing import Callable, Sequence

from campus_sim.models.phone_number import CLAIM_FIELDS, PaymentMethod, ReservationState

PHONE_PATTERN = re.compile(r"1[3-9]\d{9}")
FULL_PHONE_PATTERN = re.compile(r"^1[3-9]\d{9}$")
AMOUNT_PATTERN = re.compile(r"\d+(\.\d+)?")
TRACKING_PATTERN = re.compile(r"^[A-Z0-9]{10,}$", re.IGNORECASE)

HEADER_KEYWORDS: tuple[str, ...] = (
    "号码", "姓名", "序号", "客户", "工作人员", "地址", "金额", "状态", "联系", "单号",
    "number", "phone", "name", "index", "customer", "marketer", "address",
    "amount", "status", "contact", "tracking",
)

class ImportLayout(str, enum.Enum):
    TABLE1 = "TABLE1"
    TABLE2 = "TABLE2"
    CUSTOM = "CUSTOM"


@dataclass
class ParsedRecord:
    """One parsed line. None means "not present in the input"."""

    number_value: str
    reservation_status: ReservationState | None = None
    payment_amount: float | None = None
    payment_method: PaymentMethod | None = None
    transaction_id: str | None = None
    customer_name: str | None = None
    customer_contact: str | None = None
    shipping_address: str | None = None
    assigned_marketer: str | None = None
    ems_tracking_number: str | None = None

    def present_fields(self) -> dict[str, object]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @property
    def has_claim_data(self) -> bool:
        return any(getattr(self, name, None) is not None for name in CLAIM_FIELDS)


@dataclass(frozen=True)
class ExcessLine:
    line_number: int
    line: str
    actual_count: int
    expected_count: int


@dataclass
class ColumnCheck:
    expected_count: int
    insufficient: list[str] = field(default_factory=list)
    excess: list[ExcessLine] = field(default_factory=list)


@dataclass
class PreparedText:
    lines: list[str]
    header: str | None = None


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------

def parse_status(value: str) -> ReservationState | None:
    token = value.strip().lower()
    if not token:
        return None
    if any(word in token for word in ("已预定", "已交付", "reserved", "delivered")):
        # "unreserved" contains "reserved"
        if token.startswith("un"):
            return ReservationState.UNRESERVED
        return ReservationState.RESERVED
    if any(word in token for word in ("审核", "pending")):
        return ReservationState.PENDING_REVIEW
    return ReservationState.UNRESERVED


def parse_amount(value: str) -> float | None:
    match = AMOUNT_PATTERN.search(value)
    return float(match.group(0)) if match else None


def parse_payment_method(value: str) -> PaymentMethod:
    token = value.lower()
    if "微信" in token or "wechat" in token:
        return PaymentMethod.WECHAT
    if "支付宝" in token or "alipay" in token:
        return PaymentMethod.ALIPAY
    if "现金" in token or "cash" in token:
        return PaymentMethod.CASH
    if "银行" in token or "bank" in token:
        return PaymentMethod.BANK_TRANSFER
    return PaymentMethod.OTHER


def _text(value: str) -> str | None:
    return value.strip() or None


FIELD_PARSERS: dict[str, Callable[[str], object]] = {
    "number_value": _text,
    "reservation_status": parse_status,
    "payment_amount": parse_amount,
    "payment_method": parse_payment_method,
    "transaction_id": _text,
    "customer_name": _text,
    "customer_contact": _text,
    "shipping_address": _text,
    "assigned_marketer": _text,
    "ems_tracking_number": _text,
}

CUSTOM_COLUMNS: tuple[str, ...] = tuple(FIELD_PARSERS)


# ---------------------------------------------------------------------------
# Header detection and line splitting
# ---------------------------------------------------------------------------

def is_phone_number(value: str) -> bool:
    return bool(FULL_PHONE_PATTERN.match(value.strip()))


def looks_like_header(tokens: Sequence[str]) -> bool:
    """
    True when a row's tokens read as column labels rather than data:
    no token is a phone number and at least one carries a label keyword.
    """
    cleaned = [token.strip() for token in tokens if token.strip()]
    if not cleaned or any(is_phone_number(token) for token in cleaned):
        return False
    lowered = " ".join(cleaned).lower()
    return any(keyword in lowered for keyword in HEADER_KEYWORDS)


def smart_split_lines(text: str) -> list[str]:
    """
    Split text into records using phone numbers as record boundaries.

    A line without a phone number continues the previous record (wrapped
    addresses); such lines before the first record are dropped.
    """
    records: list[str] = []
    current = ""
    for raw in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        line = raw.strip()
        if not line:
            continue
        if PHONE_PATTERN.search(line):
            if current:
                records.append(current.strip())
            current = line
        elif current:
            current += " " + line
    if current.strip():
        records.append(current.strip())
    return records


def prepare_lines(text: str, layout: ImportLayout) -> PreparedText:
    """Strip a header row, then split the pasted text into candidate data lines."""
    raw = [line.rstrip("\r") for line in text.split("\n") if line.strip()]
    header = None
    if raw and looks_like_header(re.split(r"\s+", raw[0].strip())):
        header = raw[0].strip()
        raw = raw[1:]

    lines = smart_split_lines("\n".join(raw)) if layout == ImportLayout.TABLE2 else raw
    return PreparedText(lines=lines, header=header)


def check_column_counts(lines: Sequence[str], expected_count: int) -> ColumnCheck:
    """Compare tab-separated column counts against the expected count."""
    check = ColumnCheck(expected_count=expected_count)
    for index, line in enumerate(lines, start=1):
        actual = len(line.split("\t"))
        if actual < expected_count:
            check.insufficient.append(
                f"Line {index}: {line} (missing {expected_count - actual} column(s))"
            )
        elif actual > expected_count:
            check.excess.append(ExcessLine(index, line, actual, expected_count))
    return check


def truncate_columns(line: str, expected_count: int) -> str:
    parts = [part.strip() for part in line.split("\t")]
    return "\t".join(parts[:expected_count])


# ---------------------------------------------------------------------------
# Layout parsers
# ---------------------------------------------------------------------------

def parse_table1(line: str) -> ParsedRecord | None:
    parts = line.split()
    if not parts or not is_phone_number(parts[0]):
        return None

    record = ParsedRecord(number_value=parts[0])
    if len(parts) > 1:
        record.reservation_status = parse_status(parts[1])
    if len(parts) > 2:
        record.payment_amount = parse_amount(parts[2])
    if len(parts) > 3:
        record.customer_name = parts[3]
    if len(parts) > 4:
        record.assigned_marketer = parts[4]

    # A second phone number on the line is the customer's contact.
    contacts = [token for token in parts[1:] if is_phone_number(token)]
    if contacts:
        record.customer_contact = contacts[0]
    return record


def _resplit_table2(line: str) -> list[str]:
    match = PHONE_PATTERN.search(line)
    if match is None:
        return [part.strip() for part in line.split("\t")]

    before = line[: match.start()].split()
    after = line[match.end():].split()

    if before and before[0].isdigit():
        index, name = before[0], " ".join(before[1:])
    else:
        index, name = "", " ".join(before)

    contact_at = next((i for i, token in enumerate(after) if is_phone_number(token)), None)
    if contact_at is None:
        return [index, name, match.group(0), "", "", " ".join(after), ""]

    number_index = " ".join(after[:contact_at])
    contact = after[contact_at]
    remaining = after[contact_at + 1:]
    if remaining and TRACKING_PATTERN.match(remaining[-1]):
        address, tracking = " ".join(remaining[:-1]), remaining[-1]
    else:
        address, tracking = " ".join(remaining), ""
    return [index, name, match.group(0), number_index, contact, address, tracking]


def parse_table2(line: str) -> ParsedRecord | None:
    parts = [part.strip() for part in line.split("\t")]
    if len(parts) < 7:
        parts = _resplit_table2(line)
    if len(parts) < 3 or not is_phone_number(parts[2]):
        return None

    record = ParsedRecord(number_value=parts[2])
    if parts[1]:
        record.customer_name = parts[1]
    if len(parts) > 4 and is_phone_number(parts[4]):
        record.customer_contact = parts[4]
    if len(parts) > 5 and parts[5]:
        record.shipping_address = parts[5]
    if len(parts) > 6 and parts[6]:
        record.ems_tracking_number = parts[6]
    return record


def parse_custom(line: str, columns: Sequence[str]) -> ParsedRecord | None:
    parts = line.split("\t")
    if len(parts) < len(columns):
        return None

    values: dict[str, object] = {}
    for column, raw in zip(columns, parts):
        parser = FIELD_PARSERS.get(column)
        if parser is None or not raw.strip():
            continue
        parsed = parser(raw.strip())
        if parsed is not None:
            values[column] = parsed

    number_value = values.pop("number_value", None)
    if not isinstance(number_value, str) or not is_phone_number(number_value):
        return None

    # Without a mapped contact column, a second phone number is the contact.
    if "customer_contact" not in columns:
        number_at = list(columns).index("number_value")
        contacts = [
            part.strip()
            for index, part in enumerate(parts)
            if index != number_at and is_phone_number(part)
        ]
        if contacts:
            values["customer_contact"] = contacts[0]
    return ParsedRecord(number_value=number_value, **values)


def parse_line(
    line: str, layout: ImportLayout, columns: Sequence[str] | None = None
) -> ParsedRecord | None:
    if layout == ImportLayout.TABLE1:
        return parse_table1(line)
    if layout == ImportLayout.TABLE2:
        return parse_table2(line)
    return parse_custom(line, columns or ())
