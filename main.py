from contextlib import asynccontextmanager
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, ValidationError

import config
from context import AppContext
from errors import CartError, EmptyCartError, ErrorKind, InvalidCredentialsError
from schemas import ApiResponse, CamelModel, Product, ProductCreate, ProductFilters, ProductUpdate, User
from search import filter_products

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.INTERNAL: 500,
}

router = APIRouter()


# Utility helpers
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AuthRequest(BaseModel):
    email: str
    password: str = ""


class CartItemRequest(CamelModel):
    product_id: str
    quantity: int = 1


class QuantityUpdate(CamelModel):
    quantity: int


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def respond(response: ApiResponse):
    """Return the envelope as-is; failed envelopes get a status code matching their kind."""
    if response.success:
        return response.to_json_dict()
    return JSONResponse(status_code=STATUS_BY_KIND.get(response.kind, 500), content=response.to_json_dict())


def cart_body(ctx: AppContext) -> dict:
    return ctx.cart.summary().model_dump(mode="json", by_alias=True)


# Auth helpers

async def get_current_user(token: str = Depends(oauth2_scheme), ctx: AppContext = Depends(get_context)) -> User:
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = ctx.auth_service.decode_token(token)
    if user_id is None or token != ctx.auth_service.get_token():
        raise credentials_exception

    user = ctx.auth_service.get_user(user_id)
    if user is None:
        raise credentials_exception
    return user


def require_roles(*roles: str):
    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user
    return checker


any_user = require_roles("admin", "cashier", "staff")
admin_only = require_roles("admin")
billing_user = require_roles("admin", "cashier")


@router.get("/")
def read_root():
    return {"message": "Supermarket Management API"}


@router.get("/test")
def test_backend(ctx: AppContext = Depends(get_context)):
    info = {
        "backend": "✅ Running",
        "database": ctx.db.name,
        "collections": {name: ctx.db.count(name) for name in ctx.db.list_collection_names()},
        "storage": type(ctx.storage).__name__,
        "session": "Authenticated" if ctx.auth_service.is_authenticated() else "Not Authenticated",
    }
    return info


# Helper to accept either JSON or form for legacy compatibility
async def parse_auth_request(request: Request) -> AuthRequest:
    content_type = request.headers.get("content-type", "")
    try:
        if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
            form = await request.form()
            email = form.get("username") or form.get("email") or ""
            password = form.get("password") or ""
            return AuthRequest(email=email, password=password)
        data = await request.json()
        return AuthRequest(**data)
    except (ValidationError, ValueError, TypeError):
        raise HTTPException(status_code=422, detail="Email and password are required")


# Auth routes
@router.post("/auth/token", response_model=Token)
async def login(request: Request, ctx: AppContext = Depends(get_context)):
    auth = await parse_auth_request(request)
    try:
        result = await ctx.auth.login(auth.email, auth.password)
    except InvalidCredentialsError:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return Token(access_token=result.token)


@router.post("/auth/logout")
def logout(_: User = Depends(any_user), ctx: AppContext = Depends(get_context)):
    ctx.auth.logout()
    return {"status": "ok"}


@router.get("/auth/me")
def read_me(user: User = Depends(any_user)):
    return user.model_dump(mode="json", by_alias=True)


# Products
@router.get("/products")
async def list_products(
    search: str = "",
    category: str = "all",
    supplier: str = "all",
    stock_status: Literal["all", "low", "outOfStock"] = "all",
    sort_key: Optional[Literal["id", "name", "category", "price", "stock", "reorder_level", "supplier"]] = None,
    descending: bool = False,
    _: User = Depends(any_user),
    ctx: AppContext = Depends(get_context),
):
    response = await ctx.api.list_products()
    if not response.success:
        return respond(response)
    filters = ProductFilters(
        search=search,
        category=category,
        supplier=supplier,
        stock_status=stock_status,
        sort_key=sort_key,
        descending=descending,
    )
    return ApiResponse[List[Product]].ok(filter_products(response.data, filters)).to_json_dict()


@router.get("/products/categories")
def list_categories(_: User = Depends(any_user), ctx: AppContext = Depends(get_context)):
    return ctx.api.get_product_categories().to_json_dict()


@router.get("/products/suppliers")
def list_suppliers(_: User = Depends(any_user), ctx: AppContext = Depends(get_context)):
    return ctx.api.get_product_suppliers().to_json_dict()


@router.get("/products/{product_id}")
async def get_product(product_id: str, _: User = Depends(any_user), ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.get_product(product_id))


@router.post("/products")
async def create_product(product: ProductCreate, _: User = Depends(admin_only), ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.create_product(product))


@router.put("/products/{product_id}")
async def update_product(product_id: str, update: ProductUpdate, _: User = Depends(admin_only),
                         ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.update_product(product_id, update))


@router.delete("/products/{product_id}")
async def delete_product(product_id: str, _: User = Depends(admin_only), ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.delete_product(product_id))


# Dashboard
@router.get("/dashboard/stats")
async def dashboard_stats(_: User = Depends(any_user), ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.get_dashboard_stats())


@router.get("/dashboard/best-selling")
async def best_selling(_: User = Depends(any_user), ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.get_best_selling_products())


@router.get("/dashboard/stock-alerts")
async def stock_alerts(_: User = Depends(any_user), ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.get_stock_alerts())


@router.get("/dashboard/recent-sales")
async def recent_sales(_: User = Depends(any_user), ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.get_recent_sales())


# Insights
@router.get("/ai/forecasts")
async def forecasts(_: User = Depends(admin_only), ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.get_product_forecasts())


@router.get("/ai/forecast/{product_id}")
async def forecast(product_id: str, _: User = Depends(admin_only), ctx: AppContext = Depends(get_context)):
    return respond(await ctx.api.get_product_forecast(product_id))


# Billing
@router.get("/billing/search")
async def billing_search(q: str = "", _: User = Depends(billing_user), ctx: AppContext = Depends(get_context)):
    results = await ctx.search.submit(q)
    if results is None:
        return JSONResponse(status_code=409, content=ApiResponse.fail("Search superseded by a newer query").to_json_dict())
    return ApiResponse[List[Product]].ok(results).to_json_dict()


@router.get("/cart")
def read_cart(_: User = Depends(billing_user), ctx: AppContext = Depends(get_context)):
    return cart_body(ctx)


@router.post("/cart/items")
async def add_cart_item(req: CartItemRequest, _: User = Depends(billing_user), ctx: AppContext = Depends(get_context)):
    response = await ctx.api.get_product(req.product_id)
    if not response.success:
        return respond(response)
    try:
        ctx.cart.add_to_cart(response.data, req.quantity)
    except CartError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return cart_body(ctx)


@router.put("/cart/items/{product_id}")
def update_cart_item(product_id: str, req: QuantityUpdate, _: User = Depends(billing_user),
                     ctx: AppContext = Depends(get_context)):
    try:
        ctx.cart.update_quantity(product_id, req.quantity)
    except CartError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return cart_body(ctx)


@router.delete("/cart/items/{product_id}")
def remove_cart_item(product_id: str, _: User = Depends(billing_user), ctx: AppContext = Depends(get_context)):
    ctx.cart.remove_from_cart(product_id)
    return cart_body(ctx)


@router.delete("/cart")
def clear_cart(_: User = Depends(billing_user), ctx: AppContext = Depends(get_context)):
    ctx.cart.clear_cart()
    return cart_body(ctx)


@router.post("/cart/checkout")
async def checkout(_: User = Depends(billing_user), ctx: AppContext = Depends(get_context)):
    try:
        response = await ctx.cart.checkout(ctx.api)
    except EmptyCartError:
        raise HTTPException(status_code=400, detail="Cart is empty")
    return respond(response)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config.setup_logging()
        ctx = context if context is not None else AppContext()
        ctx.startup()
        app.state.ctx = ctx
        try:
            yield
        finally:
            ctx.shutdown()

    app = FastAPI(title="Supermarket Management API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
