import dotenv

from langchat_client import LangchatClient, LangchatTransportError

dotenv.load_dotenv()

with LangchatClient() as client:
    try:
        reply = client.chat("¿Qué hora es en Madrid?", enable_mcp=True)
    except LangchatTransportError as e:
        print(e.to_dict())
    else:
        print(reply.get("response"))
