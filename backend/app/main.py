"""
Battery Station Backend - API
=============================
FastAPI application for the battery-rental station map and rental tracker.

ARCHITECTURE:
    The browser never talks to the rental providers directly. It talks to
    this backend, which talks to two different provider APIs:

    [Browser Frontend] --HTTPS--> [This Backend] --Basic auth--> [ChargeNow API]
                                        |
                                        +----------Bearer token--> [Energo API]

    Provider answers are cached for CACHE_TTL seconds, so many browsers
    polling at once cost one upstream call per station per TTL window.

PROVIDERS:
    1. ChargeNow - DTN.../BJH... cabinets, order list (Basic auth)
    2. Energo    - CUBT... cabinets, battery orders (Bearer token that
                   expires when idle; kept alive in the background)

HOW TO RUN:
    # Install dependencies
    pip install -e .

    # Copy environment config and edit it
    cp env.example.txt .env

    # Run the server
    uvicorn app.main:app --reload --port 3000 --app-dir backend

API DOCUMENTATION:
    After starting the server, visit:
    - Swagger UI: http://localhost:3000/docs
    - ReDoc: http://localhost:3000/redoc

Author: CUUB Battery Team
"""

import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from app.models import Provider
from app.routers import admin_router, set_admin_api_key, set_station_manager, stations_router
from app.services import (
    ChargeNowService,
    EnergoService,
    Poller,
    ResultCache,
    StationManager,
    TokenStore,
)
from app.services import locations
from app.utils import parse_station_ids


# Load environment variables from .env file
load_dotenv()


# =============================================================================
# CONFIGURATION
# =============================================================================

class Config:
    """
    Application configuration loaded from environment variables.

    Environment Variables:
        CHARGENOW_API_BASE: ChargeNow API root
        CHARGENOW_AUTH: Full Authorization header value ("Basic ...")
        ENERGO_API_BASE: Energo API root
        ENERGO_OID: Energo organization id (sent as the "oid" header)
        ENERGO_TOKEN_FILE: Where the Energo bearer token is stored
        ENERGO_STATION_PREFIX: Station IDs with this prefix go to Energo
        BATTERY_PROVIDER: Who answers battery lookups (energo | chargenow)
        REQUEST_TIMEOUT: Seconds to wait for a provider response (default: 10)
        CACHE_TTL: Seconds a provider answer stays cached (default: 10)
        STATION_IDS: Comma-separated stations shown on the map
        STATION_POLL_INTERVAL: Background station snapshot interval, 0 = off
        KEEP_ALIVE_ENABLED: Ping Energo so the token does not expire
        KEEP_ALIVE_BATTERY_ID: Battery used for the ping
        KEEP_ALIVE_INTERVAL: Seconds between pings (default: 60)
        ADMIN_API_KEY: Key for /api/admin/* (admin API disabled if empty)
        FRONTEND_URL: URL of the frontend for CORS
    """

    CHARGENOW_API_BASE = os.getenv("CHARGENOW_API_BASE", ChargeNowService.DEFAULT_BASE_URL)
    CHARGENOW_AUTH = os.getenv("CHARGENOW_AUTH", "")

    ENERGO_API_BASE = os.getenv("ENERGO_API_BASE", EnergoService.DEFAULT_BASE_URL)
    ENERGO_OID = os.getenv("ENERGO_OID", EnergoService.DEFAULT_OID)
    ENERGO_TOKEN_FILE = os.getenv("ENERGO_TOKEN_FILE", str(TokenStore.DEFAULT_FILE))
    ENERGO_STATION_PREFIX = os.getenv("ENERGO_STATION_PREFIX", StationManager.DEFAULT_ENERGO_PREFIX)

    BATTERY_PROVIDER = os.getenv("BATTERY_PROVIDER", Provider.ENERGO.value)

    REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))
    CACHE_TTL = float(os.getenv("CACHE_TTL", "10"))

    STATION_IDS = parse_station_ids(os.getenv("STATION_IDS", "")) or locations.get_all_ids()
    STATION_POLL_INTERVAL = int(os.getenv("STATION_POLL_INTERVAL", "0"))

    KEEP_ALIVE_ENABLED = os.getenv("KEEP_ALIVE_ENABLED", "true").lower() in ("true", "1", "yes", "on")
    KEEP_ALIVE_BATTERY_ID = os.getenv("KEEP_ALIVE_BATTERY_ID", "RL3D52000012")
    KEEP_ALIVE_INTERVAL = int(os.getenv("KEEP_ALIVE_INTERVAL", "60"))

    ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", "")

    # Frontend URL for CORS
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Allowed CORS origins
    CORS_ORIGINS = [
        FRONTEND_URL,
        "http://localhost:5173",    # Vite dev server
        "http://localhost:3000",    # Same-origin dev
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]


def build_station_manager(config=Config) -> StationManager:
    """Wire services together from configuration."""
    token_store = TokenStore(config.ENERGO_TOKEN_FILE)

    chargenow_service = ChargeNowService(
        auth_header=config.CHARGENOW_AUTH,
        base_url=config.CHARGENOW_API_BASE,
        request_timeout=config.REQUEST_TIMEOUT,
    )
    energo_service = EnergoService(
        token_store=token_store,
        base_url=config.ENERGO_API_BASE,
        oid=config.ENERGO_OID,
        request_timeout=config.REQUEST_TIMEOUT,
    )

    return StationManager(
        chargenow_service=chargenow_service,
        energo_service=energo_service,
        token_store=token_store,
        cache=ResultCache(ttl_seconds=config.CACHE_TTL),
        poller=Poller(),
        energo_prefix=config.ENERGO_STATION_PREFIX,
        battery_provider=Provider(config.BATTERY_PROVIDER),
        station_ids=config.STATION_IDS,
    )


# =============================================================================
# APPLICATION LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    STARTUP:
        1. Build provider services, cache and StationManager
        2. Inject manager into routers
        3. Start background jobs (token keep-alive, station snapshots)

    SHUTDOWN:
        1. Stop all polling jobs
        2. Close HTTP clients
    """
    # ========== STARTUP ==========
    print("=" * 60)
    print("BATTERY STATION BACKEND - Starting")
    print("=" * 60)

    station_manager = build_station_manager(Config)
    set_station_manager(station_manager)
    set_admin_api_key(Config.ADMIN_API_KEY)

    if not Config.CHARGENOW_AUTH:
        print("!! CHARGENOW_AUTH is not set - ChargeNow requests will be rejected")

    if Config.KEEP_ALIVE_ENABLED:
        station_manager.start_token_keep_alive(
            Config.KEEP_ALIVE_BATTERY_ID,
            Config.KEEP_ALIVE_INTERVAL,
        )

    if Config.STATION_POLL_INTERVAL > 0:
        station_manager.start_station_snapshots(Config.STATION_IDS, Config.STATION_POLL_INTERVAL)

    print(f"Services initialized")
    print(f"   Stations: {len(Config.STATION_IDS)} configured")
    print(f"   Cache TTL: {Config.CACHE_TTL} seconds")
    print(f"   Battery lookups: {Config.BATTERY_PROVIDER}")
    print(f"   Energo token: {'set' if station_manager.get_token() else 'MISSING'}")
    print(f"   Token keep-alive: {'every %ss' % Config.KEEP_ALIVE_INTERVAL if Config.KEEP_ALIVE_ENABLED else 'off'}")
    print(f"   Admin API: {'enabled' if Config.ADMIN_API_KEY else 'disabled'}")
    print("=" * 60)

    yield  # Application runs here

    # ========== SHUTDOWN ==========
    print()
    print("Shutting down...")
    await station_manager.shutdown()
    print("Shutdown complete")


# =============================================================================
# CREATE FASTAPI APPLICATION
# =============================================================================

app = FastAPI(
    title="Battery Station API",
    description="""
## Overview

Station availability and battery rental status for the rental frontend.

## How It Works

1. **Stations** - `GET /api/stations` returns empty/occupied slots per station
2. **Rentals** - `GET /api/battery/{id}` returns when a battery was borrowed
   and whether it has been returned
3. **Admin** - `POST /api/admin/energo-token` (with `x-api-key`) replaces the
   Energo bearer token

Provider answers are cached for a few seconds.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# INCLUDE ROUTERS
# =============================================================================

app.include_router(stations_router)
app.include_router(admin_router)


# =============================================================================
# ROOT ENDPOINTS
# =============================================================================

@app.get(
    "/",
    summary="API Information",
    description="Get basic API information and available endpoints."
)
async def root():
    return {
        "name": "Battery Station API",
        "version": "1.0.0",
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "endpoints": {
            "stations": "GET /api/stations",
            "station": "GET /api/stations/{id}",
            "battery": "GET /api/battery/{id}",
            "orders": "GET /api/orders",
            "locations": "GET /api/locations",
            "admin": {
                "token_status": "GET /api/admin/energo-token",
                "update_token": "POST /api/admin/energo-token",
                "health": "GET /api/admin/health",
                "clear_cache": "POST /api/admin/cache/clear",
            },
        }
    }


@app.get(
    "/health",
    summary="Health Check",
    description="Check if the backend is running."
)
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "cache_ttl": Config.CACHE_TTL,
        "stations": len(Config.STATION_IDS),
    }
