"""
# `storefront/main.py` — Application entry point

- Creates the FastAPI app and configures CORS from `settings.allowed_origins` (list or `*`).
- Includes the cart router (`/cart`).
- Registers exception handlers so every failure uses the `{success, message}` envelope:
  - `CartError` → its own status (400 / 404)
  - request body validation → 400
  - `HTTPException` (auth) → its status
  - anything else → logged, 500 with a generic message
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.config import settings
from storefront.core.errors import CartError
from storefront.routers import carts

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("storefront")

app = FastAPI(
    title="Storefront Cart API",
    description="Per-user shopping cart with stock validation and live product enrichment.",
    version="1.0.0",
    debug=settings.debug,
)

# Configure CORS (allow front-end domain or all origins as specified)
allow_origins = [origin.strip() for origin in settings.allowed_origins.split(',')] if settings.allowed_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(carts.router)


def _envelope(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


@app.exception_handler(CartError)
async def _cart_error_handler(request: Request, exc: CartError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return _envelope(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid request: {field}: {first.get('msg')}" if field else f"Invalid request: {first.get('msg')}"
    else:
        message = "Invalid request"
    return _envelope(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def _unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8000, reload=True)
