# tokenauth/api/v1/router.py
from fastapi import APIRouter
from tokenauth.api.v1 import auth

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
