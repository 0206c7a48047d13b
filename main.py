"""
CLI entry point for the brand-operations insight service.

Usage:
    python main.py api [--mock] [--host 0.0.0.0] [--port 8000]
    python main.py insights --page orders [--mode fast] [--brand "..."] [--mock]
"""

import argparse
import asyncio
import json
import sys

from brandops.config import get_settings
from brandops.exceptions import BrandOpsException
from brandops.logging_config import configure_logging
from brandops.pages import page_names


def cmd_api(args):
    """Start the FastAPI server with uvicorn."""
    import uvicorn

    from brandops.api import create_app

    settings = get_settings()
    host = args.host or settings.api.host
    port = args.port or settings.api.port

    app = create_app(use_mock=args.mock)
    print(f"Starting BrandOps Insights API on {host}:{port} (mock={args.mock})")
    uvicorn.run(app, host=host, port=port, log_config=None)


def cmd_insights(args):
    """Run one page request and print the payload."""
    from brandops.cache.insight_cache import get_insight_cache
    from brandops.dispatcher import PageDispatcher
    from brandops.insights.llm import build_llm_client
    from brandops.insights.pipeline import InsightPipeline
    from brandops.upstream.client import build_data_client

    pipeline = InsightPipeline(get_insight_cache(), build_llm_client(use_mock=args.mock))
    dispatcher = PageDispatcher(build_data_client(use_mock=args.mock), pipeline)

    try:
        data = asyncio.run(dispatcher.dispatch(args.page, mode=args.mode, brand=args.brand))
    except BrandOpsException as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(data, indent=2, default=str))


def main():
    parser = argparse.ArgumentParser(
        description="BrandOps Insights - dashboard data with cached LLM insights"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # api
    p_api = subparsers.add_parser("api", help="Start REST API server")
    p_api.add_argument("--host", default=None)
    p_api.add_argument("--port", type=int, default=None)
    p_api.add_argument("--mock", action="store_true", help="Use sample data and mock LLM")

    # insights
    p_ins = subparsers.add_parser("insights", help="Fetch one dashboard page")
    p_ins.add_argument("--page", required=True, choices=page_names(), help="Dashboard page")
    p_ins.add_argument("--mode", default=None, help="fast | insights | full")
    p_ins.add_argument("--brand", default=None, help="Brand filter")
    p_ins.add_argument("--mock", action="store_true", help="Use sample data and mock LLM")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging()

    commands = {
        "api": cmd_api,
        "insights": cmd_insights,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
