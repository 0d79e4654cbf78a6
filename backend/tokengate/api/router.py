"""Tokengate API Router - aggregates the authentication and account routes."""

from fastapi import APIRouter

from tokengate.api import account, auth

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(account.router)
