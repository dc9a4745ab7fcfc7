"""ID generation utility."""

import secrets


def gen_id(prefix: str) -> str:
    """Generate prefixed ids: ses_xxx, msg_xxx, call_xxx"""
    return f"{prefix}{secrets.token_urlsafe(12)}"
