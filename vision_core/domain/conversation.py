from typing import List, Optional, Protocol

from .models import ImageAttachment, Turn


class ConversationStore(Protocol):
    """单个会话的有序消息序列，外加一个待发送的图片附件槽。"""

    def append(self, turn: Turn) -> None:
        ...

    def clear(self) -> None:
        ...

    def all(self) -> List[Turn]:
        ...

    def filter(self, query: str) -> List[Turn]:
        ...

    def __len__(self) -> int:
        ...

    @property
    def pending_image(self) -> Optional[ImageAttachment]:
        ...

    def attach_image(self, image: ImageAttachment) -> None:
        ...

    def discard_attachment(self) -> None:
        ...
