# foodorder/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from foodorder.middleware import RequestIdMiddleware
from foodorder.db import Base, engine
from foodorder.config import setup_logging
from foodorder.errors import register_error_handlers
import foodorder.models  # noqa: F401  (registers tables)

from foodorder.routers import auth, admin, orders, coupons, delivery, payments

setup_logging()

app = FastAPI(title="Food Order API", version="0.1.0")

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(orders.router)
app.include_router(coupons.router)
app.include_router(delivery.router)
app.include_router(payments.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
