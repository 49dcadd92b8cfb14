"""Masking of passenger and driver identifying data in log output."""

import logging
import re

# Applied in order; plates before phones so a plate's digits are not read as a number
MASKS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+"), "[EMAIL]"),
    # Mercosul (ABC1D23) and the older ABC-1234 format
    (re.compile(r"\b[A-Z]{3}(?:\d[A-Z]\d{2}|-\d{4})\b"), "[PLATE]"),
    (re.compile(r"(?<![\w.-])\+?\d{2,3}[-.\s]?\d{3,5}[-.\s]?\d{4}(?![\w-])"), "[PHONE]"),
)


def mask_pii(text: str) -> str:
    for pattern, replacement in MASKS:
        text = pattern.sub(replacement, text)
    return text


class PIIFilter(logging.Filter):
    """Masks emails, phone numbers and license plates.

    Pickup messages name the vehicle's plate, and notification failures log
    the message they could not deliver. The message is rendered with its
    arguments before masking so %-style logging is covered too.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            if record.args:
                rendered = record.getMessage()
                record.args = None
            else:
                rendered = record.msg
            record.msg = mask_pii(rendered)
        return True
