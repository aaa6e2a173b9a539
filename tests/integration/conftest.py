import os

import pytest
from dotenv import find_dotenv, load_dotenv

# Cargar .env lo más temprano posible (antes de pytest_collection_modifyitems)
load_dotenv(find_dotenv(usecwd=True))


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    origin = os.getenv("LANGCHAT_ORIGIN")
    for item in items:
        if "integration" in item.keywords and not origin:
            item.add_marker(pytest.mark.skip(reason="Falta LANGCHAT_ORIGIN en entorno/.env"))
