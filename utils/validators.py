import re
from datetime import date
from typing import Any, Optional

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class TextValidator:
    """Small text checks shared by the catalog write paths."""

    @staticmethod
    def is_non_blank(text: Optional[str]) -> bool:
        return isinstance(text, str) and bool(text.strip())

    @staticmethod
    def validate_email(email: Optional[str]) -> bool:
        if not TextValidator.is_non_blank(email):
            return False
        return bool(_EMAIL_RE.match(email.strip()))

    @staticmethod
    def blank_to_none(text: Optional[str]) -> Optional[str]:
        """Strip text; empty or whitespace-only values become None."""
        if text is None:
            return None
        t = str(text).strip()
        return t or None


class NumberValidator:
    """Checks for the optional numeric fields of authors and books."""

    MIN_YEAR = -3000

    @staticmethod
    def _is_int(value: Any) -> bool:
        # bool is an int subclass; True pages is never meant
        return isinstance(value, int) and not isinstance(value, bool)

    @staticmethod
    def validate_pages(pages: Any) -> bool:
        if pages is None:
            return True
        return NumberValidator._is_int(pages) and pages >= 0

    @staticmethod
    def validate_year(year: Any) -> bool:
        if year is None:
            return True
        if not NumberValidator._is_int(year):
            return False
        return NumberValidator.MIN_YEAR <= year <= date.today().year + 1
