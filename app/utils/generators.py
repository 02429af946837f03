# ABOUTME: Random code and credential generators
# ABOUTME: Key codes, VPN usernames and passwords drawn from the secrets module

import secrets
import string

KEY_CODE_ALPHABET = string.ascii_uppercase + string.digits
PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_key_code(group_code: str, length: int = 8) -> str:
    """Key code of the form <GROUP>-XXXXXXXX."""
    suffix = "".join(secrets.choice(KEY_CODE_ALPHABET) for _ in range(length))
    return f"{group_code}-{suffix}"


def generate_username(prefix: str = "vpnuser", digits: int = 6) -> str:
    return prefix + "".join(secrets.choice(string.digits) for _ in range(digits))


def generate_password(length: int = 8) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))
