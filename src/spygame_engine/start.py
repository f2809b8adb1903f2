#!/usr/bin/env python3
"""Startup script for the Spy Game engine API"""

import uvicorn

from .config import EngineSettings


def main():
    settings = EngineSettings.from_env()

    print(f"Starting Spy Game engine on {settings.host}:{settings.port}")
    print(f"Health check available at: http://{settings.host}:{settings.port}/health")

    uvicorn.run(
        "spygame_engine.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
