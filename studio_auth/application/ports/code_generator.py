from typing import Protocol


class CodeGenerator(Protocol):
    def next(self) -> str:
        ...
