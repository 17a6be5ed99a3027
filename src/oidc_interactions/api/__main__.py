"""
oidc_interactions.api.__main__

Entrypoint for running the service via `python -m oidc_interactions.api`.
"""

from __future__ import annotations

import uvicorn

from oidc_interactions.api.app import create_app
from oidc_interactions.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
