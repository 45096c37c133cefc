import uvicorn

from .config import settings


def main() -> None:
    uvicorn.run("campus_events.api:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
