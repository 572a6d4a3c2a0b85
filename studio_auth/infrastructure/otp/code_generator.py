import secrets
import string

from ...application.ports.code_generator import CodeGenerator


class SecretsCodeGenerator(CodeGenerator):
    """Numeric codes drawn from the OS CSPRNG."""

    def __init__(self, length: int = 6, alphabet: str = string.digits) -> None:
        if length < 4:
            raise ValueError("OTP length must be at least 4")
        self.length = length
        self.alphabet = alphabet

    def next(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))
