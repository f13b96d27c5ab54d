import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cellarsnap.friends.errors import FriendGraphError, StoreFailure, Unauthenticated

log = logging.getLogger(__name__)


async def friend_graph_error_handler(request: Request, exc: FriendGraphError) -> JSONResponse:
    if isinstance(exc, StoreFailure):
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FriendGraphError, friend_graph_error_handler)
