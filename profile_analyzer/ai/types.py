from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Protocol


Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str


@dataclass(frozen=True)
class PreparedSection:
    """Section content as handed to the analyzer: chunked text plus extracted signals."""

    name: str
    exists: bool
    chunks: tuple[str, ...] = ()
    item_count: int = 0
    signals: Mapping[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return "\n".join(self.chunks)


class TextAnalyzer(Protocol):
    async def analyze(
        self, prompt: str, sections: Mapping[str, PreparedSection]
    ) -> Mapping[str, Any]: ...
