#!/usr/bin/env python3
"""
Entry point for the lexmap backend.
Runs the FastAPI app under uvicorn with host/port from settings.
"""


def main():
    import uvicorn

    from lexmap.core.config import settings

    uvicorn.run("lexmap.app:app", host=settings.main_host, port=settings.main_port, reload=settings.is_dev)


if __name__ == "__main__":
    main()
