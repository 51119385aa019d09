"""Run the FastAPI app for the streaming chat service."""

from __future__ import annotations

import logging
import os

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from src.routers import chat_router, validation_exception_handler

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Streaming Chat", version="0.1.0")
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.include_router(chat_router)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
