"""
HTTPS server for the pod mutation webhook.

Serves the Kubernetes mutating admission contract on ``POST /inject`` and a
liveness probe on ``GET /livez``.
"""

import logging
import re
import ssl
from pathlib import Path

from aiohttp.web import (
    Application,
    AppRunner,
    Request,
    Response,
    TCPSite,
    json_response,
)

from injection_operator.models.admission import AdmissionRequest
from injection_operator.mutation.handler import PodMutationHandler

logger = logging.getLogger(__name__)

INJECT_PATH = "/inject"
LIVEZ_PATH = "/livez"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(h|ms|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_timeout(value: str | None) -> float | None:
    """
    Parse the API server's ``timeout`` query parameter.

    The API server sends a duration such as ``10s`` or ``1m30s``.

    Returns:
        Timeout in seconds, or None when the value is missing or malformed
    """
    if not value:
        return None

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(value):
        if match.start() != position:
            return None
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(value) or total <= 0:
        return None
    return total


def create_ssl_context(cert_dir: str | None) -> ssl.SSLContext | None:
    """
    Build a server TLS context from tls.crt and tls.key in cert_dir.

    Returns:
        The TLS context, or None when no certificate is present
    """
    if not cert_dir:
        return None

    certfile = Path(cert_dir) / "tls.crt"
    keyfile = Path(cert_dir) / "tls.key"
    if not certfile.exists() or not keyfile.exists():
        logger.warning(f"No serving certificate in {cert_dir}, serving plain HTTP")
        return None

    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(certfile=str(certfile), keyfile=str(keyfile))
    return context


class InjectionWebhookServer:
    """aiohttp server for the pod mutation webhook."""

    def __init__(
        self,
        handler: PodMutationHandler,
        port: int = 8443,
        host: str = "0.0.0.0",
        cert_dir: str | None = None,
    ):
        """
        Initialize the webhook server.

        Args:
            handler: Admission handler
            port: Port to serve on
            host: Host interface to bind to
            cert_dir: Directory with tls.crt and tls.key
        """
        self.handler = handler
        self.port = port
        self.host = host
        self.cert_dir = cert_dir
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_post(INJECT_PATH, self._inject_handler)
        self.app.router.add_get(LIVEZ_PATH, self._livez_handler)

    async def _inject_handler(self, request: Request) -> Response:
        """Handle an AdmissionReview for a pod."""
        try:
            review = await request.json()
            admission_request = AdmissionRequest.from_review(review)
        except ValueError as e:
            logger.warning(f"Rejecting malformed AdmissionReview: {e}")
            return Response(text=f"malformed AdmissionReview: {e}", status=400)

        timeout = parse_timeout(request.query.get("timeout"))
        response = await self.handler.handle(admission_request, timeout=timeout)
        return json_response(response.to_review())

    async def _livez_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        """Start the webhook server."""
        try:
            self.runner = AppRunner(self.app)
            await self.runner.setup()

            ssl_context = create_ssl_context(self.cert_dir)
            self.site = TCPSite(
                self.runner, self.host, self.port, ssl_context=ssl_context
            )
            await self.site.start()

            scheme = "https" if ssl_context else "http"
            logger.info(
                f"Pod mutation webhook available at {scheme}://{self.host}:{self.port}{INJECT_PATH}"
            )
        except Exception as e:
            logger.error(f"Failed to start pod mutation webhook server: {e}")
            raise

    async def stop(self) -> None:
        """Stop the webhook server."""
        try:
            if self.site:
                await self.site.stop()
                self.site = None

            if self.runner:
                await self.runner.cleanup()
                self.runner = None

            logger.info("Pod mutation webhook server stopped")
        except Exception as e:
            logger.error(f"Error stopping pod mutation webhook server: {e}")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
