"""
FastAPI facade over the checkout client, for presentation layers that talk HTTP.
"""
import logging
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from storefront_checkout.cart_repository import CartRepository
from storefront_checkout.cart_service import CartSession
from storefront_checkout.checkout_service import CheckoutService
from storefront_checkout.config import Config
from storefront_checkout.exceptions import (
    AuthError,
    MissingFieldsError,
    ParseError,
    RowNotFoundError,
    ServerError,
    TransportError,
    ValidationError
)
from storefront_checkout.http_client import BackendClient
from storefront_checkout.middleware import RequestLoggingMiddleware
from storefront_checkout.models import (
    AddItemRequest,
    CartView,
    DeliveryInfo,
    OrderReceipt,
    PriceOverrideRequest,
    QuantityChangeRequest
)

logger = logging.getLogger(__name__)


def _allow_all(request: Request) -> bool:
    return True


def create_app(
    backend: Optional[BackendClient] = None,
    session_gate: Optional[Callable[[Request], bool]] = None
) -> FastAPI:
    """
    Build the API.

    session_gate decides whether the caller's session may check out; the
    authentication layer in front of this service supplies it.
    """
    backend = backend or BackendClient()
    session_gate = session_gate or _allow_all
    repository = CartRepository(backend)
    checkout_service = CheckoutService(backend, repository)
    sessions: "OrderedDict[str, CartSession]" = OrderedDict()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        for session in sessions.values():
            session.close()
        await backend.aclose()

    app = FastAPI(
        title="Storefront Checkout API",
        description="Device-scoped cart and checkout",
        version="1.0.0",
        lifespan=lifespan
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.state.sessions = sessions

    def _device(device_id: Optional[str]) -> str:
        if not device_id or not device_id.strip():
            raise HTTPException(status_code=400, detail="Device UUID is required")
        return device_id.strip()

    async def _session(request: Request, device_id: str) -> CartSession:
        session = sessions.get(device_id)
        if session is None:
            session = CartSession(repository, device_id, is_authorized=session_gate(request))
            sessions[device_id] = session
            while len(sessions) > max(1, Config.MAX_SESSIONS):
                _, evicted = sessions.popitem(last=False)
                evicted.close()
            await session.refresh()
        else:
            session.is_authorized = session_gate(request)
            sessions.move_to_end(device_id)
        return session

    def _view(session: CartSession) -> CartView:
        return CartView(
            device_uuid=session.device_id,
            rows=session.rows,
            totals=session.totals,
            error=str(session.last_error) if session.last_error else None
        )

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "checkout-api", "backend": Config.API_BASE_URL}

    @app.get("/checkout/cart", response_model=CartView)
    async def get_cart(
        request: Request,
        device_id: Optional[str] = Header(None, alias="X-Device-UUID")
    ):
        """Reload the cart from the backend. Failures come back as an empty cart with an error."""
        device_id = _device(device_id)
        known = device_id in sessions
        session = await _session(request, device_id)
        if known:
            await session.refresh()
        return _view(session)

    @app.post("/checkout/cart/items", response_model=CartView)
    async def add_cart_item(
        payload: AddItemRequest,
        request: Request,
        device_id: Optional[str] = Header(None, alias="X-Device-UUID")
    ):
        device_id = _device(device_id)
        session = await _session(request, device_id)
        await session.add_item(
            payload.product_id,
            payload.quantity,
            payload.selected_size,
            payload.selected_attributes
        )
        return _view(session)

    @app.post("/checkout/cart/{row_id}/quantity", response_model=CartView)
    async def change_quantity(
        row_id: str,
        payload: QuantityChangeRequest,
        request: Request,
        device_id: Optional[str] = Header(None, alias="X-Device-UUID")
    ):
        session = await _session(request, _device(device_id))
        session.adjust_quantity(row_id, payload.delta)
        return _view(session)

    @app.put("/checkout/cart/{row_id}/price", response_model=CartView)
    async def override_price(
        row_id: str,
        payload: PriceOverrideRequest,
        request: Request,
        device_id: Optional[str] = Header(None, alias="X-Device-UUID")
    ):
        session = await _session(request, _device(device_id))
        session.set_unit_price(row_id, payload.unit_price)
        return _view(session)

    @app.delete("/checkout/cart/{row_id}")
    async def remove_cart_row(
        row_id: str,
        request: Request,
        device_id: Optional[str] = Header(None, alias="X-Device-UUID")
    ):
        """Remove a row. The row stays removed locally even if the backend delete fails."""
        session = await _session(request, _device(device_id))
        outcome = await session.remove(row_id)
        return {
            "success": outcome.synced,
            "row_id": outcome.row_id,
            "removed": outcome.removed,
            "message": "Product removed from cart" if outcome.synced
            else "Failed to remove product from cart",
            "cart": _view(session).model_dump(mode="json")
        }

    @app.post("/checkout/order", response_model=OrderReceipt)
    async def place_order(
        delivery: DeliveryInfo,
        request: Request,
        device_id: Optional[str] = Header(None, alias="X-Device-UUID")
    ):
        device_id = _device(device_id)
        session = await _session(request, device_id)
        receipt = await checkout_service.place_order(session, delivery)
        sessions.pop(device_id, None)
        session.close()
        return receipt

    # Error handlers
    @app.exception_handler(MissingFieldsError)
    async def missing_fields_handler(request, exc):
        return JSONResponse(
            status_code=400,
            content={"error": "Missing fields", "message": str(exc), "fields": exc.fields}
        )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request, exc):
        return JSONResponse(
            status_code=400,
            content={"error": "Validation error", "message": str(exc)}
        )

    @app.exception_handler(AuthError)
    async def auth_error_handler(request, exc):
        return JSONResponse(
            status_code=401,
            content={"error": "Not authorized", "message": str(exc)}
        )

    @app.exception_handler(RowNotFoundError)
    async def row_not_found_handler(request, exc):
        return JSONResponse(
            status_code=404,
            content={"error": "Row not found", "message": str(exc)}
        )

    @app.exception_handler(ServerError)
    async def server_error_handler(request, exc):
        return JSONResponse(
            status_code=502,
            content={"error": "Backend error", "message": exc.message, "status": exc.status_code}
        )

    @app.exception_handler(ParseError)
    async def parse_error_handler(request, exc):
        return JSONResponse(
            status_code=502,
            content={"error": "Backend error", "message": str(exc)}
        )

    @app.exception_handler(TransportError)
    async def transport_error_handler(request, exc):
        return JSONResponse(
            status_code=503,
            content={"error": "Service unavailable", "message": "Backend unreachable"}
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Config.APP_PORT)
