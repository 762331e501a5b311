#!/usr/bin/env python3
"""
Run script for the SalesMind API
"""
import uvicorn

from salesmind.config.settings import settings
from salesmind.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port, reload=settings.debug)
