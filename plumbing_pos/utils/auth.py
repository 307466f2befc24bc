# plumbing_pos/utils/auth.py
from __future__ import annotations

from typing import Union

import bcrypt

# ---- bcrypt defaults / policy ----
_BCRYPT_DEFAULT_ROUNDS = 12          # used when hashing
_BCRYPT_MIN_ACCEPTABLE_ROUNDS = 12   # needs_rehash() below this


def _parse_bcrypt_cost(hash_str: str) -> int | None:
    """
    Extract the cost from a bcrypt hash: $2b$12$...
    Returns None if not parseable.
    """
    try:
        parts = hash_str.split("$")
        # ['', '2b', '12', 'rest...']
        if len(parts) < 4:
            return None
        return int(parts[2])
    except ValueError:
        return None


# ------------------------------- Public API -------------------------------

def hash_password(password: str, *, rounds: int = _BCRYPT_DEFAULT_ROUNDS) -> str:
    """
    Hash `password` with bcrypt. `rounds` is clamped to a minimum of
    _BCRYPT_MIN_ACCEPTABLE_ROUNDS. The result is compatible with verify_password().
    """
    if password is None or password == "":
        raise ValueError("Password cannot be empty.")
    rounds = max(int(rounds), _BCRYPT_MIN_ACCEPTABLE_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(password: str, encoded: Union[str, bytes, None]) -> bool:
    """True iff `password` matches the stored bcrypt hash. Malformed hashes never match."""
    if not password or not encoded:
        return False
    enc = encoded.encode("utf-8") if isinstance(encoded, str) else encoded
    try:
        return bcrypt.checkpw(password.encode("utf-8"), enc)
    except ValueError:
        # bcrypt raises ValueError on an invalid salt / hash format
        return False


def needs_rehash(encoded: str) -> bool:
    """True if the stored hash uses a weaker cost than the current policy."""
    cost = _parse_bcrypt_cost(encoded or "")
    return cost is None or cost < _BCRYPT_MIN_ACCEPTABLE_ROUNDS
