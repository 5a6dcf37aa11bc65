"""
Masking of sensitive values for diagnostic output.
"""
from typing import Dict, Iterable, Mapping, Optional

SENSITIVE_HEADERS = frozenset({"authorization", "proxy-authorization", "cookie", "x-auth-token"})


def mask_value(value: Optional[str]) -> Optional[str]:
    """Replace a secret with ``#MASKED:<length>#``."""
    if value is None:
        return None
    return f"#MASKED:{len(value)}#"


def mask_headers(
    headers: Optional[Mapping[str, str]],
    sensitive: Iterable[str] = SENSITIVE_HEADERS,
) -> Dict[str, str]:
    """
    Copy headers with sensitive values masked.

    Args:
        headers: Outbound request headers
        sensitive: Header names (case-insensitive) whose values are masked

    Returns:
        New dictionary safe to log or display
    """
    names = {name.lower() for name in sensitive}
    return {
        key: mask_value(value) if key.lower() in names else value
        for key, value in (headers or {}).items()
    }
