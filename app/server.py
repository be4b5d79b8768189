"""FastAPI server setup and routes"""
from fastapi import FastAPI, Response
from fastapi.responses import HTMLResponse
from prometheus_client import CollectorRegistry, CONTENT_TYPE_LATEST, generate_latest
from config import Config
from version import __version__
from logging_config import get_logger
from .middleware import RequestLoggingMiddleware


logger = get_logger(__name__)


class MetricsServer:
    """FastAPI server exposing a Prometheus registry"""

    def __init__(self, config: Config, registry: CollectorRegistry):
        self.config = config
        self.registry = registry
        self.app = FastAPI(
            title="EMQ Exporter",
            version=__version__,
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )

        if self.config.enable_request_logging:
            self.app.add_middleware(RequestLoggingMiddleware)

        self._setup_routes()

    def _setup_routes(self):
        """Setup FastAPI routes"""

        # Sync handler: runs in Starlette's threadpool, off the event loop
        def get_metrics():
            """Serve metrics in Prometheus text format"""
            return Response(generate_latest(self.registry), media_type=CONTENT_TYPE_LATEST)

        self.app.add_api_route(
            self.config.web_telemetry_path,
            get_metrics,
            methods=["GET"],
            response_class=Response,
        )

        @self.app.get('/', response_class=HTMLResponse)
        def index():
            """Web interface"""
            return self._generate_html_interface()

    def _generate_html_interface(self) -> str:
        metrics_path = self.config.web_telemetry_path
        return f"""<html>
<head><title>EMQ Exporter</title></head>
<body>
<h1>EMQ Exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>
"""

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
