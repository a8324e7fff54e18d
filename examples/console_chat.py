"""Minimal console front-end for VisionSession.

Commands: /image <path>, /summarize, /clear, /search <text>, /quit
"""

import asyncio

from vision_core import VisionSession
from vision_core.domain.exceptions import ValidationError


def _print_turns(turns, start: int) -> None:
    for turn in turns[start:]:
        who = "You" if turn.role == "user" else "VISION"
        suffix = f" [image: {turn.image.mime_type}, {len(turn.image.data)} bytes]" if turn.image else ""
        print(f"{who}: {turn.text}{suffix}")


async def main() -> None:
    async with VisionSession() as session:
        print("Welcome. I am VISION. Ask me anything.")
        while True:
            line = (await asyncio.to_thread(input, "> ")).strip()
            seen = len(session.turns)
            if line == "/quit":
                break
            if line.startswith("/image "):
                try:
                    session.attach_image_file(line[len("/image "):].strip())
                    print("Image ready for analysis")
                except ValidationError as e:
                    print(e.message)
                continue
            if line.startswith("/search"):
                _print_turns(session.search(line[len("/search"):].strip()), 0)
                continue
            if line == "/clear":
                session.clear()
                print("Chat history cleared.")
                continue
            if line == "/summarize":
                await session.summarize()
            else:
                await session.dispatch(line)
            _print_turns(session.turns, seen)


if __name__ == "__main__":
    asyncio.run(main())
