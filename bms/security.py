# bms/security.py

import bcrypt

# Checked against when the username is unknown so both login failure paths cost one bcrypt round.
_DUMMY_HASH = bcrypt.hashpw(b"bms-dummy-password", bcrypt.gensalt()).decode("utf-8")


def hash_password(plain: str) -> str:
    # returns a utf-8 str like "$2b$12$..."
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(plain.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def burn_password_check(plain: str) -> None:
    verify_password(plain, _DUMMY_HASH)
