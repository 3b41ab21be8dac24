"""
Feature key validation for zkfss.

Purpose
-------
Reject feature keys and path segments that ZooKeeper would refuse as node
names, before any path is built or any watch is installed.

Rules
-----
A feature key:
1. must be a non-empty string and must not start or end with "/";
2. must not contain empty segments ("a//b");
3. must not use "." or ".." as a whole segment ("." inside a name is fine);
4. must not contain the null character or any of these code points:
   U+0001-U+001F, U+007F-U+009F, U+D800-U+F8FF, U+FFF0-U+FFFF,
   or anything outside the Basic Multilingual Plane (U+10000 and up).
   ZooKeeper checks node names one UTF-16 unit at a time, so every
   surrogate pair lands in the forbidden U+D800-U+F8FF range.

A segment (application name, hostname) follows the same rules and may not
contain "/" at all.

Observability
-------------
Every validation failure is logged at debug level with the raw value and the
reason, then raised as KeyFormatError.
"""

from __future__ import annotations

from typing import Any, NoReturn, Optional

from zkfss.core.constants import PATH_SEPARATOR
from zkfss.core.exceptions import KeyFormatError
from zkfss.core.logging.logger import get_logger

logger = get_logger(__name__)


def _raise_key_error(value: Any, reason: str) -> NoReturn:
    logger.debug(
        "Feature key validation failed",
        extra={"raw_value": repr(value), "reason": reason},
    )
    raise KeyFormatError(str(value), reason)


def _is_forbidden_code_point(code_point: int) -> bool:
    if code_point == 0x0000:
        return True
    if 0x0001 <= code_point <= 0x001F or 0x007F <= code_point <= 0x009F:
        return True
    if 0xD800 <= code_point <= 0xF8FF or 0xFFF0 <= code_point <= 0xFFFF:
        return True
    # Encoded as a surrogate pair
    return code_point >= 0x1_0000


def find_forbidden_character(value: str) -> Optional[int]:
    """Return the index of the first forbidden character, or None."""
    for index, char in enumerate(value):
        if _is_forbidden_code_point(ord(char)):
            return index
    return None


class KeyValidator:
    """
    Stateless validation of feature keys and single path segments.

    All methods return the validated value unchanged on success and raise
    KeyFormatError on failure.
    """

    @staticmethod
    def validate_feature_key(key: Any) -> str:
        """
        Validate a feature key.

        Args:
            key: Raw feature key supplied by the caller

        Returns:
            The key, unchanged

        Raises:
            KeyFormatError: If the key violates any naming rule

        Example:
            >>> KeyValidator.validate_feature_key("checkout/v2")
            'checkout/v2'
            >>> KeyValidator.validate_feature_key("/checkout")  # KeyFormatError
        """
        if not isinstance(key, str):
            _raise_key_error(key, f"must be a string, got {type(key).__name__}")
        if not key:
            _raise_key_error(key, "must not be empty")
        if key.startswith(PATH_SEPARATOR):
            _raise_key_error(key, "must not start with '/'")
        if key.endswith(PATH_SEPARATOR):
            _raise_key_error(key, "must not end with '/'")

        for segment in key.split(PATH_SEPARATOR):
            KeyValidator._check_segment(key, segment)

        return key

    @staticmethod
    def validate_segment(value: Any, field_name: str) -> str:
        """
        Validate a single path segment such as an application name.

        Args:
            value: Raw segment value
            field_name: Name of the setting, for the error message

        Raises:
            KeyFormatError: If the value is not a usable node name
        """
        if not isinstance(value, str):
            _raise_key_error(value, f"{field_name} must be a string")
        if PATH_SEPARATOR in value:
            _raise_key_error(value, f"{field_name} must not contain '/'")
        KeyValidator._check_segment(value, value)
        return value

    @staticmethod
    def _check_segment(key: str, segment: str) -> None:
        if not segment:
            _raise_key_error(key, "empty path segment")
        if segment in (".", ".."):
            _raise_key_error(key, f"'{segment}' is not allowed as a path segment")
        index = find_forbidden_character(segment)
        if index is not None:
            _raise_key_error(
                key,
                f"forbidden character U+{ord(segment[index]):04X} at position {index}",
            )
