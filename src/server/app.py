"""
REST API for the token analytics dashboard.

All JSON routes live under the API prefix (default /api) and answer with
{"success": true, "data": ..., "source": "live" | "synthetic" | "mixed"}.
Unknown paths get a JSON 404 and unhandled errors a JSON 500.
"""

import asyncio
import json
import logging
from typing import Optional

import aiohttp_cors
from aiohttp import web

from config.paths import STATIC_DIR
from config.settings import API_PREFIX, APP_VERSION, ENVIRONMENT, SERVER_HOST, SERVER_PORT
from src.core.dashboard import EXPORT_TYPES, DashboardService
from src.core.models import isoformat, utc_now

logger = logging.getLogger(__name__)

MIN_ADDRESS_LENGTH = 10


def error_response(status: int, error: str, message: Optional[str] = None) -> web.Response:
    body = {"success": False, "error": error}
    if message is not None:
        body["message"] = message
    return web.json_response(body, status=status)


@web.middleware
async def error_handler_middleware(request, handler):
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return error_response(404, "Resource not found")
    except web.HTTPException:
        raise
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error(f"Server error on {request.method} {request.path}: {str(e)}", exc_info=True)
        message = "An unexpected error occurred" if ENVIRONMENT == "production" else str(e)
        return error_response(500, "Internal server error", message)


async def read_json_body(request) -> dict:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except json.JSONDecodeError as e:
        raise web.HTTPBadRequest(
            text=json.dumps({"success": False, "error": "Invalid JSON body", "message": str(e)}),
            content_type="application/json"
        )
    return body if isinstance(body, dict) else {}


class DashboardAPI:
    def __init__(self, service: DashboardService):
        self.service = service

    async def health(self, request):
        return web.json_response({
            "status": "ok",
            "message": "OKC Token Launch Analytics API is running",
            "timestamp": isoformat(utc_now()),
            "environment": ENVIRONMENT,
            "apiVersion": APP_VERSION
        })

    async def new_tokens(self, request):
        tokens, source = await self.service.get_new_tokens()
        return web.json_response({"success": True, "count": len(tokens), "data": tokens, "source": source})

    async def trending_tokens(self, request):
        tokens, source = await self.service.get_trending()
        return web.json_response({"success": True, "count": len(tokens), "data": tokens, "source": source})

    async def token_metrics(self, request):
        address = request.match_info.get("address", "")
        if len(address) < MIN_ADDRESS_LENGTH:
            return error_response(400, "Invalid token address")

        metrics, source = await self.service.get_token_metrics(address)
        if not metrics:
            return error_response(404, "Token metrics not found")
        return web.json_response({"success": True, "data": metrics, "source": source})

    async def compare_tokens(self, request):
        body = await read_json_body(request)
        tokens = body.get("tokens")
        if not isinstance(tokens, list) or not tokens:
            return error_response(400, "Invalid tokens array")

        rows, report, source = await self.service.compare(tokens)
        return web.json_response({
            "success": True,
            "count": len(rows),
            "data": rows,
            "report": report,
            "source": source
        })

    async def filter_tokens(self, request):
        body = await read_json_body(request)
        filters = body.get("filters") if isinstance(body.get("filters"), dict) else {}
        tokens, summary, source = await self.service.filter_tokens(
            filters, body.get("sortBy"), bool(body.get("ascending", False))
        )
        return web.json_response({
            "success": True,
            "count": len(tokens),
            "data": tokens,
            "summary": summary,
            "source": source
        })

    async def recommendations(self, request):
        body = await read_json_body(request)
        tokens = body.get("tokens") if isinstance(body.get("tokens"), list) else None
        recommendations, report, source = await self.service.recommend(tokens)
        return web.json_response({
            "success": True,
            "count": len(recommendations),
            "data": recommendations,
            "report": report,
            "source": source
        })

    async def dashboard(self, request):
        data, source = await self.service.get_dashboard_data()
        return web.json_response({"success": True, "data": data, "source": source})

    async def market_overview(self, request):
        overview = await self.service.get_market_overview()
        return web.json_response({"success": True, "data": overview, "source": overview.get("source")})

    async def export(self, request):
        export_type = request.match_info.get("type", "")
        if export_type not in EXPORT_TYPES:
            return error_response(400, f"Unknown export type: {export_type}")

        result = await self.service.export_data(export_type)
        export_format = request.query.get("format")
        if export_format in ("json", "csv"):
            return web.json_response({
                "success": True,
                "message": f"Data exported as {export_format.upper()}",
                "exportResult": result.get(export_format)
            })
        return web.json_response({
            "success": True,
            "message": "Data exported successfully",
            "exportResult": result
        })

    async def index(self, request):
        index_file = STATIC_DIR / "index.html"
        if not index_file.exists():
            raise web.HTTPNotFound()
        return web.FileResponse(index_file)


def create_app(service: Optional[DashboardService] = None, prefix: str = API_PREFIX) -> web.Application:
    service = service or DashboardService()
    api = DashboardAPI(service)

    app = web.Application()
    app.middlewares.append(error_handler_middleware)

    app.router.add_get(f"{prefix}/health", api.health)
    app.router.add_get(f"{prefix}/tokens/new", api.new_tokens)
    app.router.add_get(f"{prefix}/tokens/trending", api.trending_tokens)
    app.router.add_get(f"{prefix}/tokens/metrics/{{address}}", api.token_metrics)
    app.router.add_post(f"{prefix}/tokens/compare", api.compare_tokens)
    app.router.add_post(f"{prefix}/tokens/filter", api.filter_tokens)
    app.router.add_post(f"{prefix}/recommendations", api.recommendations)
    app.router.add_get(f"{prefix}/dashboard", api.dashboard)
    app.router.add_get(f"{prefix}/market/overview", api.market_overview)
    app.router.add_get(f"{prefix}/export/{{type}}", api.export)

    app.router.add_get("/", api.index)
    if STATIC_DIR.exists():
        app.router.add_static("/static", STATIC_DIR, name="static")

    cors = aiohttp_cors.setup(app, defaults={
        "*": aiohttp_cors.ResourceOptions(
            allow_credentials=True,
            expose_headers="*",
            allow_headers="*",
            allow_methods="*"
        )
    })
    for route in list(app.router.routes()):
        try:
            cors.add(route)
        except ValueError:
            logger.debug(f"Skipping CORS for route: {route.resource}")

    async def close_service(app):
        await service.close()

    app.on_cleanup.append(close_service)
    return app


async def run_server(host: str = SERVER_HOST, port: int = SERVER_PORT,
                     service: Optional[DashboardService] = None):
    """Serve the API until cancelled."""
    app = create_app(service)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Dashboard API running on http://{host}:{port}{API_PREFIX}")

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        logger.info("Dashboard API stopped")
