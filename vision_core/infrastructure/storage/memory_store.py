from typing import List, Optional

from vision_core.domain.conversation import ConversationStore
from vision_core.domain.models import ImageAttachment, Turn


class InMemoryConversationStore(ConversationStore):
    """会话内存存储：只追加，clear() 时整体清空（附件一并丢弃）。"""

    def __init__(self) -> None:
        self._turns: List[Turn] = []
        self._pending_image: Optional[ImageAttachment] = None

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)

    def clear(self) -> None:
        # 整体替换列表，已交给外部的快照不受影响
        self._turns = []
        self._pending_image = None

    def all(self) -> List[Turn]:
        return list(self._turns)

    def filter(self, query: str) -> List[Turn]:
        if not query:
            return self.all()
        needle = query.lower()
        return [t for t in self._turns if needle in t.text.lower()]

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def pending_image(self) -> Optional[ImageAttachment]:
        return self._pending_image

    def attach_image(self, image: ImageAttachment) -> None:
        self._pending_image = image

    def discard_attachment(self) -> None:
        self._pending_image = None
