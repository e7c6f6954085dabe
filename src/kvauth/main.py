"""Application entry point for the kvauth server."""

from kvauth.app import App
from kvauth.config import Config
from kvauth.logging import setup_logging
from kvauth.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
