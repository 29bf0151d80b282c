import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from persona_chat.chat import PersonaChat
from persona_chat.config import build_llm, get_config
from persona_chat.llm import StreamingLLM
from persona_chat.routes import router
from persona_chat.store import MessageStore

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, llm: StreamingLLM | None = None) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    config = get_config(resolved)

    store = MessageStore(resolved)
    sessions = store.load()
    logger.info("PersonaChat data dir %s (%d conversations)", resolved, len(sessions))

    app = FastAPI(title="PersonaChat")
    app.state.data_dir = resolved
    app.state.default_language = config["default_language"]
    app.state.chat = PersonaChat(
        store=store,
        llm=llm or build_llm(config),
        fragment_timeout=config["fragment_timeout"],
    )
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
