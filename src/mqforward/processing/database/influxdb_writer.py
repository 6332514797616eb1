# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
InfluxDB 1.x HTTP writer.

Sends batches of points as line protocol to the /write endpoint. The writer
never retries: a failed batch is reported to the caller and dropped there.
"""

import ssl
import logging
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter

from ...capture.shared.config import InfluxDBConf, expand_path
from ...capture.shared.errors import ConfigurationError, ConnectionCheckError, WriteError
from ...capture.shared.models import Point
from .line_protocol import point_to_line

logger = logging.getLogger(__name__)

PING_TIMEOUT = 0.5  # seconds
DEFAULT_SCHEME = "http"
USER_AGENT = "mqforward/0.1.0"


def build_host_url(conf: InfluxDBConf) -> str:
    """
    Resolve the InfluxDB base URL.

    Uses conf.url when set, otherwise scheme://hostname:port.

    Raises:
        ConfigurationError: If the result is not a usable http(s) URL
    """
    host = conf.url
    if not host:
        scheme = conf.scheme or DEFAULT_SCHEME
        host = f"{scheme}://{conf.hostname}:{conf.port}"

    try:
        parts = urlsplit(host)
        # accessing port validates it
        parts.port
    except ValueError as e:
        raise ConfigurationError(f"invalid influxdb url {host!r}: {e}") from e

    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ConfigurationError(f"invalid influxdb url {host!r}")

    return host.rstrip("/")


def load_ssl_context(ca_certs: Sequence[str], insecure: bool = False) -> ssl.SSLContext:
    """
    Build an SSL context from the system store plus extra CA certificates.

    Args:
        ca_certs: Paths to PEM files (~ is expanded)
        insecure: Skip certificate and hostname verification

    Raises:
        ConfigurationError: If a certificate file cannot be loaded
    """
    context = ssl.create_default_context()
    for path in ca_certs:
        path = expand_path(path)
        logger.debug(f"Loading certificate {path}")
        try:
            context.load_verify_locations(cafile=path)
        except (OSError, ssl.SSLError) as e:
            raise ConfigurationError(f"error while loading certificate {path}: {e}") from e

    if insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class _SSLContextAdapter(HTTPAdapter):
    """HTTPAdapter that uses a prepared SSL context for every pool."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs):
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context
        return super().proxy_manager_for(*args, **kwargs)


class InfluxDBWriter:
    """
    Writes point batches to InfluxDB over HTTP(S).

    Construction checks connectivity; use from_config() in production code.
    """

    def __init__(
        self,
        base_url: str,
        db: str,
        username: str = "",
        password: str = "",
        timeout: float = 10.0,
        ssl_context: Optional[ssl.SSLContext] = None,
        insecure: bool = False,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize writer.

        Args:
            base_url: InfluxDB base URL, e.g. http://localhost:8086
            db: Target database
            username: Basic auth user (optional)
            password: Basic auth password (optional)
            timeout: Per-request timeout in seconds
            ssl_context: SSL context for https targets
            insecure: Skip certificate verification
            session: Pre-built session (mainly for tests)
        """
        self.base_url = base_url.rstrip("/")
        self.db = db
        self.timeout = timeout
        self.session = session or self._create_session(username, password, ssl_context, insecure)

    @classmethod
    def from_config(cls, conf: InfluxDBConf, check: bool = True) -> "InfluxDBWriter":
        """
        Create a writer from configuration and verify the server answers.

        Raises:
            ConfigurationError: Invalid URL or certificate
            ConnectionCheckError: Ping failed
        """
        base_url = build_host_url(conf)
        logger.info(f"influxdb host: {base_url}")

        ssl_context = None
        if base_url.startswith("https://"):
            ssl_context = load_ssl_context(conf.ca_certs, conf.insecure)

        writer = cls(
            base_url,
            conf.db,
            username=conf.username,
            password=conf.password,
            timeout=conf.timeout,
            ssl_context=ssl_context,
            insecure=conf.insecure,
        )

        if check:
            ok, version = writer.ping()
            if not ok:
                writer.close()
                raise ConnectionCheckError(f"influxdb at {base_url} is not reachable")
            logger.info(f"influxdb connected (version {version or 'unknown'})")

        return writer

    def _create_session(
        self,
        username: str,
        password: str,
        ssl_context: Optional[ssl.SSLContext],
        insecure: bool,
    ) -> requests.Session:
        """Create HTTP session; no retries, every failure surfaces to the caller."""
        session = requests.Session()

        if ssl_context is not None:
            session.mount("https://", _SSLContextAdapter(ssl_context, max_retries=0))
        else:
            session.mount("https://", HTTPAdapter(max_retries=0))
        session.mount("http://", HTTPAdapter(max_retries=0))

        if insecure:
            session.verify = False

        if username:
            session.auth = (username, password)

        session.headers.update({
            "User-Agent": USER_AGENT,
            "Content-Type": "text/plain; charset=utf-8",
        })
        return session

    def ping(self, timeout: float = PING_TIMEOUT) -> Tuple[bool, Optional[str]]:
        """
        Check that the server answers /ping.

        Returns:
            (reachable, server version if reported)
        """
        try:
            response = self.session.get(f"{self.base_url}/ping", timeout=timeout)
        except requests.RequestException as e:
            logger.debug(f"influxdb ping failed: {e}")
            return False, None

        if not response.ok:
            logger.debug(f"influxdb ping returned HTTP {response.status_code}")
            return False, None
        return True, response.headers.get("X-Influxdb-Version")

    def write(self, points: List[Point]) -> int:
        """
        Write a batch of points.

        Points that cannot be serialized are logged and skipped; the rest
        of the batch is still sent.

        Args:
            points: Points in arrival order

        Returns:
            Number of points written

        Raises:
            WriteError: On transport errors or non-2xx responses
        """
        lines = []
        for point in points:
            try:
                lines.append(point_to_line(point))
            except ValueError as e:
                logger.warning(f"skipping point: {e}")
        if not lines:
            return 0
        body = "\n".join(lines)

        try:
            response = self.session.post(
                f"{self.base_url}/write",
                params={"db": self.db, "precision": "ns"},
                data=body.encode("utf-8"),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise WriteError(f"influxdb request failed: {e}") from e

        if not response.ok:
            raise WriteError(
                f"influxdb write failed (HTTP {response.status_code}): {response.text.strip()}",
                status_code=response.status_code,
            )

        logger.debug(f"wrote {len(lines)} points to {self.db}")
        return len(lines)

    def close(self) -> None:
        self.session.close()
