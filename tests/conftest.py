from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI, Request
from httpx import ASGITransport, AsyncClient

from cms_api.main import create_app
from cms_api.middleware.validate_batch import batch_dependency
from cms_api.schemas.batch import Accountability, BatchRequest

SINGLETONS = {"settings"}


async def resolve_collection(collection: str, request: Request) -> str:
    """Mark singleton collections and attach a fixed caller identity."""
    request.state.singleton = collection in SINGLETONS
    request.state.accountability = Accountability(user="user-1", role="role-1")
    return collection


def describe(batch: BatchRequest) -> dict:
    return {
        "data": {
            "body": batch.body,
            "sanitized_query": batch.sanitized_query,
        }
    }


def build_app() -> FastAPI:
    app = create_app()

    @app.get("/items/{collection}")
    async def read_items(
        collection: str = Depends(resolve_collection),
        batch: BatchRequest = Depends(batch_dependency("read")),
    ):
        return describe(batch)

    @app.api_route("/items/{collection}", methods=["SEARCH"])
    async def search_items(
        collection: str = Depends(resolve_collection),
        batch: BatchRequest = Depends(batch_dependency("read")),
    ):
        return describe(batch)

    @app.patch("/items/{collection}")
    async def update_items(
        collection: str = Depends(resolve_collection),
        batch: BatchRequest = Depends(batch_dependency("update")),
    ):
        return describe(batch)

    @app.delete("/items/{collection}")
    async def delete_items(
        collection: str = Depends(resolve_collection),
        batch: BatchRequest = Depends(batch_dependency("delete")),
    ):
        return describe(batch)

    return app


@pytest.fixture
def app() -> FastAPI:
    return build_app()


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client bound to the ASGI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def next_function():
    """Error-first continuation recording every call."""

    class Continuation:
        def __init__(self):
            self.calls = []

        def __call__(self, error: Optional[Exception] = None):
            self.calls.append(error)

    return Continuation()
