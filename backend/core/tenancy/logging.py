from __future__ import annotations

import logging
import re
from typing import Any


_CNPJ_RE = re.compile(
    r"(?<!\d)(?:\d{14}|\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2})(?!\d)"
)
_CPF_RE = re.compile(r"(?<!\d)(?:\d{11}|\d{3}\.\d{3}\.\d{3}-\d{2})(?!\d)")
# Asaas API keys are prefixed with "$aact_" (production and sandbox).
_GATEWAY_KEY_RE = re.compile(r"\$aact_[A-Za-z0-9_\-:=]+")


def mask_cpf_cnpj(text: str) -> str:
    """Mask CPF/CNPJ patterns in a string.

    We intentionally do not keep any digits in logs to reduce accidental leakage.
    """

    if not text:
        return text

    text = _CNPJ_RE.sub("***CNPJ***", text)
    text = _CPF_RE.sub("***CPF***", text)
    return text


def mask_sensitive(text: str) -> str:
    """Mask CPF/CNPJ and payment gateway API keys."""

    if not text:
        return text
    return _GATEWAY_KEY_RE.sub("***API_KEY***", mask_cpf_cnpj(text))


class MaskSensitiveDataFilter(logging.Filter):
    """Logging filter to mask CPF/CNPJ and gateway keys in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:  # pragma: no cover
            message = str(getattr(record, "msg", ""))

        masked = mask_sensitive(str(message))

        # Replace the formatted message and clear args to avoid double formatting.
        record.msg = masked
        record.args = ()

        for key in ("cpf", "cnpj", "cpf_cnpj", "api_key"):
            if hasattr(record, key):
                value: Any = getattr(record, key)
                if isinstance(value, str):
                    setattr(record, key, mask_sensitive(value))

        return True
