import os

# Set environment variables for tests before importing the app
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["EXEMPT_PATH_PREFIXES"] = '["/api/"]'

from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pkgserve.main import app

@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Provide an AsyncClient for the FastAPI app."""
    # Use ASGITransport for testing FastAPI apps
    # Redirects are asserted on, never followed
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        follow_redirects=False,
    ) as ac:
        yield ac
