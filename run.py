#!/usr/bin/env python3
"""
Run script for the Sacral Track backend
"""
import uvicorn

from sacraltrack.config.settings import settings
from sacraltrack.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, reload=settings.debug)
