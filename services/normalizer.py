"""
Input normalization for identity reconciliation
Canonicalizes raw email/phone values so matching can use exact equality
"""

from typing import Any, NamedTuple, Optional

from .errors import ValidationError


class NormalizedIdentity(NamedTuple):
    email: Optional[str]
    phone_number: Optional[str]

    def lock_keys(self):
        """Keys identifying this request for mutual exclusion, in a stable order"""
        keys = []
        if self.email is not None:
            keys.append(f"email:{self.email}")
        if self.phone_number is not None:
            keys.append(f"phone:{self.phone_number}")
        return sorted(keys)


def normalize_email(value: Any) -> Optional[str]:
    """Trim and lower-case an email; empty or non-string input is treated as absent"""
    if not isinstance(value, str):
        return None
    email = value.strip().lower()
    return email or None


def normalize_phone(value: Any) -> Optional[str]:
    """
    Convert a phone number to its trimmed string form; empty input is absent
    Numbers are rendered without a trailing '.0', otherwise the format is kept verbatim
    """
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    phone = str(value).strip()
    return phone or None


def normalize_identity(email: Any = None, phone_number: Any = None) -> NormalizedIdentity:
    """
    Normalize both identity fields

    Raises:
        ValidationError: if both fields are absent after normalization
    """
    identity = NormalizedIdentity(normalize_email(email), normalize_phone(phone_number))
    if identity.email is None and identity.phone_number is None:
        raise ValidationError(
            "Either email or phoneNumber must be provided",
            details={"fields": ["email", "phoneNumber"]}
        )
    return identity
