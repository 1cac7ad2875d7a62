#!/usr/bin/env python3
"""
Deal Workflow - API Server

Run this script to start the workflow API.

Usage:
    python serve.py [--port PORT] [--host HOST] [--reload]

Example:
    python serve.py --port 8080
"""

import argparse

import uvicorn


def main():
    parser = argparse.ArgumentParser(
        description="Deal Workflow - API Server"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8080,
        help="Port to listen on (default: 8080)"
    )
    parser.add_argument(
        "--host", "-H",
        type=str,
        default="localhost",
        help="Host to bind to (default: localhost)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Reload on code changes"
    )

    args = parser.parse_args()

    uvicorn.run(
        "deal_workflow.api.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
