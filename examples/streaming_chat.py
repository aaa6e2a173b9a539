import dotenv

from langchat_client import LangchatClient, StreamCallbacks

dotenv.load_dotenv()

with LangchatClient() as client:
    print(client.check_health())

    client.chat_stream(
        "Explica en un párrafo qué es la ciencia",
        callbacks=StreamCallbacks(
            on_chunk=lambda text: print(text, end="", flush=True),
            on_error=lambda message: print(f"\n[error] {message}"),
            on_end=lambda: print(),
        ),
    )
