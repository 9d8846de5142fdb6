import re

from api.errors import ValidationError
from api.models import SlipFile

IMAGE_TYPE_RE = re.compile(r"^image/(png|jpe?g|webp)$", re.IGNORECASE)
PHONE_RE = re.compile(r"^0\d{8,9}$")
POSTAL_CODE_RE = re.compile(r"^\d{5}$")
OTP_RE = re.compile(r"^\d{6}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_image(file: SlipFile, max_bytes: int, field: str = "file") -> SlipFile:
    """
    Check an image upload before it leaves the client.
    Wrong type and too large are reported separately; type is checked first.
    """
    if not IMAGE_TYPE_RE.match(file.content_type or ""):
        raise ValidationError(field, "Only PNG, JPG or WebP images are supported.")
    if file.size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise ValidationError(field, f"File is larger than {limit_mb:g}MB.")
    return file


def validate_slip(file: SlipFile, max_bytes: int) -> SlipFile:
    return validate_image(file, max_bytes, field="slip")


def validate_phone(phone: str) -> str:
    phone = (phone or "").strip()
    if not PHONE_RE.match(phone):
        raise ValidationError("phone", "Invalid phone number.")
    return phone


def validate_postal_code(code: str) -> str:
    code = (code or "").strip()
    if not POSTAL_CODE_RE.match(code):
        raise ValidationError("postal_code", "Invalid postal code.")
    return code


def validate_otp(otp: str) -> str:
    otp = (otp or "").strip()
    if not OTP_RE.match(otp):
        raise ValidationError("otp", "The code must be 6 digits.")
    return otp


def validate_email(email: str) -> str:
    email = (email or "").strip()
    if not EMAIL_RE.match(email):
        raise ValidationError("email", "Invalid email address.")
    return email


def validate_required(field: str, value: str, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(field, f"{label} is required.")
    return value


def password_strength(pwd: str) -> int:
    """0..4, one point each for upper, lower, digit and symbol."""
    score = 0
    if re.search(r"[A-Z]", pwd):
        score += 1
    if re.search(r"[a-z]", pwd):
        score += 1
    if re.search(r"[0-9]", pwd):
        score += 1
    if re.search(r"[^A-Za-z0-9]", pwd):
        score += 1
    return score
