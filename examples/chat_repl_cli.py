import asyncio
import logging
import time

import uuid_utils
from dotenv import load_dotenv

from turnkit.config import get_settings
from turnkit.models.chat import ChatRequest
from turnkit.runners.conversation_engine import ConversationEngine
from turnkit.runners.factory import create_engine, create_model_gateway
from turnkit.stores.in_memory import InMemoryCheckpointStore, InMemoryMessageStore

# CHAT REPL CLI - Interactive chat interface over a ConversationEngine.

# Usage:
#     uv run python examples/chat_repl_cli.py
#     uv run python examples/chat_repl_cli.py --memory   (no DynamoDB needed)

# Prerequisites:
#     - OPENAI_API_KEY environment variable set
#     - DYNAMODB_TABLE_NAME pointing at an existing table, unless --memory


class ChatReplCli:
    """Interactive REPL CLI for chatting through the conversation engine."""

    def __init__(self, engine: ConversationEngine, user_id: str = "repl-user"):
        self.engine = engine
        self.user_id = user_id
        self.conversation_id = str(uuid_utils.uuid7())
        self.stream = True

    def clear_conversation(self):
        """Generate a new conversation ID, starting a fresh conversation."""
        self.conversation_id = str(uuid_utils.uuid7())
        print(f"[Conversation cleared. New conversation_id: {self.conversation_id[:8]}...]")

    def _request(self, user_message: str) -> ChatRequest:
        return ChatRequest(
            messages=[ConversationEngine.create_message(user_message, "user")],
            user_id=self.user_id,
            conversation_id=self.conversation_id,
        )

    async def send_message(self, user_message: str) -> float:
        """Send a message and print the reply.

        Returns:
            Elapsed time in seconds.
        """
        start_time = time.monotonic()
        print("-" * 50)
        if self.stream:
            async for chunk in self.engine.ask_stream(self._request(user_message)):
                if chunk.done:
                    print()
                    break
                print(chunk.content, end="", flush=True)
        else:
            response = await self.engine.ask(self._request(user_message))
            print(response.content)
        print("-" * 50)
        return time.monotonic() - start_time

    async def show_history(self):
        messages = await self.engine.history(self.user_id, self.conversation_id)
        if not messages:
            print("[No messages yet]")
        for message in messages:
            speaker = "you" if message.is_from_user else "assistant"
            print(f"{speaker}: {message.content}")

    async def run(self):
        """Run the REPL loop."""
        print("=" * 50)
        print("turnkit REPL CLI")
        print("=" * 50)
        print(f"Conversation ID: {self.conversation_id[:8]}...")
        print("Type '/clear' to start a new conversation")
        print("Type '/history' to print the conversation so far")
        print("Type '/stream' to toggle streaming replies")
        print("Type '/quit' or Ctrl+D to exit")
        print("=" * 50)

        while True:
            try:
                user_input = await asyncio.to_thread(input, "\n> ")

                if not user_input.strip():
                    continue

                command = user_input.strip()
                if command == "/clear":
                    self.clear_conversation()
                    continue
                if command == "/history":
                    await self.show_history()
                    continue
                if command == "/stream":
                    self.stream = not self.stream
                    print(f"[Streaming {'on' if self.stream else 'off'}]")
                    continue
                if command in ("/quit", "/exit", "/q"):
                    print("\nGoodbye!")
                    break

                print()
                elapsed = await self.send_message(user_input)
                print(f"Response time: {elapsed:.2f}s")

            except (EOFError, KeyboardInterrupt):
                print("\n\nGoodbye!")
                break
            except Exception as e:
                print(f"\n[Error: {e}]")


async def main(in_memory: bool):
    settings = get_settings()
    if in_memory:
        engine = ConversationEngine(
            InMemoryMessageStore(),
            InMemoryCheckpointStore(),
            create_model_gateway(settings),
            system_prompt=settings.system_prompt,
        )
    else:
        engine = create_engine(settings)

    await ChatReplCli(engine).run()


if __name__ == "__main__":
    import sys

    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if get_settings().debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(main(in_memory="--memory" in sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nREPL terminated.")
