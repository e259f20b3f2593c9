"""Run the signaling server with uvicorn: ``python -m signaling``."""
import uvicorn

from signaling.config import get_config


def main() -> None:
    config = get_config()
    uvicorn.run(
        "signaling.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level,
    )


if __name__ == "__main__":
    main()
