"""KV Server - FastAPI application backing remote document and image storage."""

import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, File, Header, HTTPException, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from shared.config import get_api_keys, get_database_url
from shared.errors import StorageError
from shared.kv_store import SqlKeyValueStore
from services.kv_server.image_store import generate_file_name, image_store_from_env

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 2 * 1024 * 1024
IMAGE_CACHE_CONTROL = "public, max-age=31536000"

# Global instances
kv_store: Optional[SqlKeyValueStore] = None
image_store = None


async def verify_api_key(authorization: Optional[str] = Header(None, description="Bearer credential")):
    """
    Verify the bearer credential from the Authorization header.

    Raises:
        HTTPException: 401 if the credential is missing or invalid

    Returns:
        str: The validated credential
    """
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Request missing bearer credential")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing credential. Please provide an Authorization: Bearer header.",
            headers={"WWW-Authenticate": "Bearer"}
        )

    api_key = authorization[len("Bearer "):].strip()
    if api_key not in get_api_keys():
        logger.warning(f"Invalid API key attempted: {api_key[:10]}...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return api_key


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    global kv_store, image_store

    logger.info("KV Server starting up...")

    kv_store = SqlKeyValueStore(get_database_url())
    kv_store.create_tables()
    logger.info("Database connection initialized")

    image_store = image_store_from_env(kv_store)
    logger.info(f"Image storage: {image_store.storage_name}")

    yield

    kv_store.engine.dispose()
    logger.info("KV Server shutting down...")


app = FastAPI(
    title="KV Server",
    description="Remote key-value and image storage for the personal site",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def error_handling_middleware(request: Request, call_next):
    """
    Global error handling middleware.

    Error codes:
    - 400: Bad Request (validation errors, invalid input)
    - 500: Internal Server Error (storage failures, unexpected errors)
    """
    try:
        return await call_next(request)
    except HTTPException:
        raise
    except ValueError as exc:
        logger.warning(f"Validation error: {exc}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Bad Request", "detail": str(exc), "type": "validation_error"}
        )
    except StorageError as exc:
        logger.error(f"Storage error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Storage Error", "detail": str(exc), "type": "storage_error"}
        )
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal Server Error",
                "detail": "An unexpected error occurred. Please try again later.",
                "type": "internal_error"
            }
        )


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "kv_server",
        "version": "0.1.0"
    }


class SaveDataRequest(BaseModel):
    """Request body for save-data."""
    key: Optional[str] = None
    data: Any = None


@app.post("/upload-image")
async def upload_image(
    request: Request,
    file: Optional[UploadFile] = File(None),
    api_key: str = Depends(verify_api_key)
):
    """
    Store an uploaded image and return a URL that serves it.

    Rejects files above 2MB; clients compress before retrying.
    """
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    data = await file.read()
    if len(data) > MAX_IMAGE_BYTES:
        logger.warning(f"File too large: {len(data)} bytes")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "File too large",
                "message": "File size must be less than 2MB",
                "size": len(data),
                "maxSize": MAX_IMAGE_BYTES,
            }
        )

    file_name = generate_file_name(file.filename)
    await image_store.put(file_name, file.filename or file_name, file.content_type, data)
    url = str(request.url_for("get_image", file_name=file_name))

    logger.info(f"Image upload complete: {file_name}")
    return {
        "fileName": file_name,
        "url": url,
        "path": file_name,
        "success": True,
        "storage": image_store.storage_name,
        "message": f"Image stored in {image_store.storage_name}",
    }


@app.get("/get-image/{file_name}", name="get_image")
async def get_image(file_name: str):
    """Serve a stored image. Public so that returned URLs render directly."""
    image = await image_store.get(file_name)
    if image is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")

    content_type, data = image
    return Response(
        content=data,
        media_type=content_type,
        headers={"Cache-Control": IMAGE_CACHE_CONTROL}
    )


@app.post("/save-data")
async def save_data(request: SaveDataRequest, api_key: str = Depends(verify_api_key)):
    """Replace the document stored under a key."""
    if not request.key or request.data is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Key and data are required")

    kv_store.set_item(request.key, json.dumps(request.data, ensure_ascii=False))
    logger.info(f"Data saved: {request.key}")
    return {"success": True}


@app.get("/get-data/{key}")
async def get_data(key: str, api_key: str = Depends(verify_api_key)):
    """Return {"data": value}, with null when the key is absent."""
    raw = kv_store.get_item(key)
    if raw is None:
        logger.info(f"No data found for key: {key}")
        return {"data": None}
    return {"data": json.loads(raw)}


@app.get("/get-data-by-prefix/{prefix}")
async def get_data_by_prefix(prefix: str, api_key: str = Depends(verify_api_key)):
    results = [
        {"key": key, "data": json.loads(value)}
        for key, value in kv_store.items_with_prefix(prefix)
    ]
    return {"results": results}


@app.delete("/delete-data/{key}")
async def delete_data(key: str, api_key: str = Depends(verify_api_key)):
    kv_store.remove_item(key)
    logger.info(f"Data deleted: {key}")
    return {"success": True}


if __name__ == "__main__":
    import uvicorn

    from shared.config import get_env

    port = int(get_env("KV_SERVER_PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port)
