"""
Storefront Core Module

This package contains the core infrastructure components:
- db: Database clients (Supabase + Redis)
- services: repositories, domain services, mail
- routers: FastAPI endpoints
"""
