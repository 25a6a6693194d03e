"""StockSync API entry point."""

import uvicorn
from stocksync.config.settings import get_settings

settings = get_settings()

if __name__ == "__main__":
    uvicorn.run(
        "stocksync.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
