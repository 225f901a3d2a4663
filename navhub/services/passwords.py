from __future__ import annotations

from werkzeug.security import check_password_hash, generate_password_hash

DEFAULT_HASH_METHOD = "scrypt:32768:8:1"


class PasswordVerifier:
    def __init__(self, method: str = DEFAULT_HASH_METHOD):
        self.method = method

    def hash(self, plaintext: str) -> str:
        return generate_password_hash(plaintext, method=self.method)

    def verify(self, plaintext: str, stored_hash: str) -> bool:
        if not plaintext or not stored_hash:
            return False
        try:
            return check_password_hash(stored_hash, plaintext)
        except ValueError:
            # unknown hash method in the stored value
            return False
