"""Run the khipu codec server: python -m khipu"""

import uvicorn

from khipu.config import load_config

config = load_config()
uvicorn.run("khipu.app:create_app", host=config.host, port=config.port, factory=True)
