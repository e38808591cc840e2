from typing import Optional

import typer
import uvicorn
from pydantic import ValidationError

from shared.relay_logging import relay_logging
from schedule_relay.app import DOWNLOAD_PATH
from schedule_relay.config import load_settings
from schedule_relay.exceptions import ConfigError

app = typer.Typer(help="Start the Assembly Schedule API server.")


@app.command()
def start(
    host: str = typer.Option("0.0.0.0", help="Host to bind the FastAPI server."),
    port: Optional[int] = typer.Option(None, help="Port to bind (defaults to PORT or 3000)."),
    reload: bool = typer.Option(False, help="Enable autoreload (development only)."),
):
    try:
        settings = load_settings()
    except (ConfigError, ValidationError) as e:
        relay_logging.error(f"Failed to start server: {e}")
        raise typer.Exit(code=1)

    port = port or settings.port
    relay_logging.info(f"Server running on port {port}")
    relay_logging.info(f"API available at http://localhost:{port}{DOWNLOAD_PATH}")
    uvicorn.run(
        "schedule_relay.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
