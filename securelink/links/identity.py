"""
Token identifier generation.
"""

import secrets

from ..common.utils import current_millis, hash_string


def new_token_id(program_id: str, account_login: str) -> str:
    """
    Generate an opaque, non-sequential token identifier.

    SHA-256 over the issuing program and account, the current time in
    milliseconds and 8 bytes from the OS CSPRNG. The digest does not reveal
    its inputs. Collisions are not checked for.

    Returns:
        64-character lowercase hex string
    """
    nonce = secrets.token_hex(8)
    return hash_string(f"{program_id}-{account_login}-{current_millis()}-{nonce}")
