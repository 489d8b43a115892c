#!/usr/bin/env python3
"""
Storefront Backend Runner
=========================

Usage:
    python run_app.py                    # Development server with auto-reload
    python run_app.py --mode prod        # Production mode
    python run_app.py --init-db          # Create tables, then exit
    python run_app.py --port 8001        # Custom port
"""

import argparse
import asyncio
import sys

def run_server(host: str, port: int, reload: bool, workers: int):
    """Run the FastAPI application"""
    import uvicorn

    print(f"Starting Storefront API on {host}:{port}")
    print(f"API Docs: http://{host}:{port}/api/docs")
    uvicorn.run(
        "storefront.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=None if reload else workers,
        log_level="info"
    )

def init_database():
    """Create all tables"""
    from storefront.core.database import init_db, close_db

    async def _init():
        await init_db()
        await close_db()

    asyncio.run(_init())
    print("Database tables created")

def main():
    parser = argparse.ArgumentParser(
        description="Storefront Backend Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--mode",
        choices=["dev", "prod"],
        default="dev",
        help="Server mode (default: dev)"
    )
    parser.add_argument("--host", default=None, help="Host to bind to (default: settings.HOST)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: settings.PORT)")
    parser.add_argument("--init-db", action="store_true", help="Create database tables and exit")

    args = parser.parse_args()

    from storefront.core.config import settings

    if args.init_db:
        init_database()
        return 0

    run_server(
        host=args.host or settings.HOST,
        port=args.port or settings.PORT,
        reload=args.mode == "dev",
        workers=settings.WORKERS
    )
    return 0

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")
        sys.exit(0)
