"""
Cart Sync API - Main FastAPI Application

Single entry point for the remote cart endpoints (Vercel serverless).
"""
from cartsync.app import create_app

app = create_app()
