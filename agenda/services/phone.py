import re

import phonenumbers

from agenda.core.config import settings

_NON_DIGITS = re.compile(r"[^\d+]")


def normalize_phone(raw: str, region: str | None = None) -> str:
    """Canonical E.164 form used as the per-tenant patient key.

    Numbers without a country code are read in ``region`` (default from settings).
    Input phonenumbers cannot parse is reduced to its digits with a leading ``+``.
    """
    if not raw or not raw.strip():
        return ""
    try:
        parsed = phonenumbers.parse(raw, region or settings.default_phone_region)
    except phonenumbers.NumberParseException:
        cleaned = _NON_DIGITS.sub("", raw).lstrip("+")
        return f"+{cleaned}" if cleaned else ""
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
