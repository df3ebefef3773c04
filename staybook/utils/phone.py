import re


def normalize_phone_e164(phone: str | None, default_country_code: str = "+91") -> str:
    """Normalize phone numbers to a basic E.164 form.

    Ten-digit national numbers get ``default_country_code``; anything we cannot
    infer is returned with punctuation stripped.
    """
    if not phone:
        return ""
    raw = re.sub(r"[^\d+]", "", phone)
    if raw.startswith("+"):
        return raw
    if raw.startswith("00"):
        return "+" + raw[2:]
    if raw.startswith("0") and len(raw) == 11:
        raw = raw[1:]
    if len(raw) == 10 and default_country_code.startswith("+"):
        return default_country_code + raw
    return raw


def mask_phone(phone: str | None, visible_digits: int = 2) -> str:
    normalized = normalize_phone_e164(phone)
    if len(normalized) <= visible_digits:
        return normalized
    return "*" * (len(normalized) - visible_digits) + normalized[-visible_digits:]
