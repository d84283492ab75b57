#!/usr/bin/env python3
"""
Run the Chatvault application.

Server configuration is controlled via environment variables:
- SERVER_HOST: Host to bind to (default: 127.0.0.1)
- SERVER_PORT: Port to listen on (default: 8000)
- CHATVAULT_DATABASE_URL: SQLAlchemy async database URL
"""
import uvicorn

from chatvault.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "chatvault.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
