import dotenv

from langchain_core.messages import HumanMessage
from langchat_client import ChatLangchat

dotenv.load_dotenv()

model = ChatLangchat(enable_skills=True, enable_mcp=False)

for token in model.stream([HumanMessage(content="Explica en un párrafo qué es la ciencia")]):
    print(token.content, end="", flush=True)
print()
