import bcrypt
from flask import current_app

def password_problems(plain_password) -> list:
    if not isinstance(plain_password, str) or not plain_password:
        return ["Password is required"]
    min_len = int(current_app.config.get("PASSWORD_MIN_LEN", 8))
    if len(plain_password) < min_len:
        return [f"Password must be at least {min_len} characters long"]
    return []

def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    # bcrypt expects bytes
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False
