# camrent/api/v1/api.py
from fastapi import APIRouter

from camrent.api.v1.endpoints import auth, cameras, rentals, extensions, payments

api_router_v1 = APIRouter(prefix="/api/v1")

api_router_v1.include_router(auth.router, prefix="/auth")
api_router_v1.include_router(cameras.router, prefix="/cameras")
api_router_v1.include_router(rentals.router, prefix="/rentals")
api_router_v1.include_router(extensions.router, prefix="/extensions")
api_router_v1.include_router(payments.router, prefix="/payments")
