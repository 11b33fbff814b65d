# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""WSGI server for the file relay (threaded backend).

This module exposes a minimal WebOb-based WSGI application, hosted with a
threading ``wsgiref`` server inside an ``oslo_service`` launcher. It
implements the upload form, multipart uploads into a flat upload
directory, streamed downloads and an HTML listing of the stored files. TLS
support is configured via ``oslo_service.sslutils`` and ``oslo_config``.
"""

import os
import ssl
import threading
from socketserver import ThreadingMixIn
from typing import Optional
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from oslo_log import log as logging
from oslo_service import service, sslutils
from webob import Request, Response
from webob.request import DisconnectionError
from webob.static import DirectoryApp, FileIter

from . import pages
from .config import CONF, RelayConfig
from .utils import (
    BadRequestError,
    NotFoundError,
    UploadTooLargeError,
    content_disposition,
    download_path,
    ensure_directory,
    list_entries,
    mime_type_for,
    purge_directory,
    resolve_stored_path,
    sanitize_filename,
    store_stream,
)

LOG = logging.getLogger(__name__)

sslutils.register_opts(CONF)

# Allowance for the multipart boundaries and part headers wrapping the file.
MULTIPART_ENVELOPE_BYTES = 64 * 1024

FILE_FIELD = "file"
DOWNLOAD_PREFIX = "/download/"


def _html(body: str, status: int = 200) -> Response:
    """Return an HTML response."""
    return Response(text=body, status=status, content_type="text/html")


def _error(status: int, detail: str) -> Response:
    """Return a plain-text error response with the given HTTP status."""
    return Response(text=detail, status=status, content_type="text/plain")


def _file_field(request: Request):
    """Return the single uploaded file part of a multipart request.

    Raises BadRequestError when the part is missing, repeated or is not a
    file.
    """
    try:
        fields = request.POST.getall(FILE_FIELD)
    except ValueError as exc:
        raise BadRequestError(f"malformed multipart body: {exc}")
    if not fields:
        raise BadRequestError(f"no file part named '{FILE_FIELD}' in the request")
    if len(fields) > 1:
        raise BadRequestError(f"exactly one file part named '{FILE_FIELD}' is expected")
    field = fields[0]
    # WebOb hands parts without a filename over as plain strings.
    if not getattr(field, "filename", None) or getattr(field, "file", None) is None:
        raise BadRequestError(f"'{FILE_FIELD}' must be a file part with a filename")
    return field


class RelayApplication:
    """WSGI application serving the relay routes.

    The upload and staging directories are created when the application is
    built, so they exist before the first request is served.
    """

    def __init__(self, config: RelayConfig):
        self.config = config
        ensure_directory(config.upload_dir)
        ensure_directory(config.staging_path)
        removed = purge_directory(config.staging_path)
        if removed:
            LOG.info("Removed %d stale partial uploads from %s", removed, config.staging_path)

        self._static = None
        if config.static_dir is not None:
            if config.static_dir.is_dir():
                self._static = DirectoryApp(str(config.static_dir))
            else:
                LOG.warning("Static directory %s does not exist, ignoring", config.static_dir)

    def home_ep(self, request: Request) -> Response:
        """Render the upload form."""
        return _html(pages.home_page())

    def upload_ep(self, request: Request) -> Response:
        """Store the uploaded file under its sanitized base name."""
        limit = self.config.max_upload_bytes
        try:
            if (
                request.content_length is not None
                and request.content_length > limit + MULTIPART_ENVELOPE_BYTES
            ):
                raise UploadTooLargeError(limit)
            field = _file_field(request)
            original_name = field.filename
            name = sanitize_filename(original_name)
            # Parts without a Content-Type header are typed text/plain by the parser.
            mime_type = field.type
            if not self.config.admission.admits(mime_type, name):
                raise BadRequestError(f"file type not allowed: {mime_type}")
            destination = resolve_stored_path(self.config.upload_dir, name)
            size = store_stream(field.file, self.config.staging_path, destination, limit)
        except DisconnectionError as exc:
            LOG.warning("Upload interrupted by client: %s", exc)
            return _error(400, "Upload failed: the upload was interrupted")
        except BadRequestError as exc:
            LOG.info("Rejected upload: %s", exc)
            return _error(400, f"Upload failed: {exc}")
        except Exception as exc:
            LOG.exception("upload failed: %s", exc)
            return _error(500, str(exc))

        LOG.info("Stored %s (%d bytes, declared type %s)", name, size, mime_type)
        url = request.host_url + download_path(name)
        return _html(pages.upload_result(original_name, url))

    def download_ep(self, request: Request, name: str) -> Response:
        """Stream a stored file back as an attachment."""
        try:
            path = resolve_stored_path(self.config.upload_dir, name)
            if not path.is_file():
                raise NotFoundError(f"File not found: {name}")
            fp = open(path, "rb")
        except BadRequestError as exc:
            return _error(400, str(exc))
        except NotFoundError as exc:
            return _error(404, str(exc))
        except FileNotFoundError:
            return _error(404, f"File not found: {name}")
        except Exception as exc:
            LOG.exception("download failed: %s", exc)
            return _error(500, str(exc))

        st = os.fstat(fp.fileno())
        response = Response(
            app_iter=FileIter(fp),
            content_type=mime_type_for(name),
            content_length=st.st_size,
            last_modified=st.st_mtime,
            conditional_response=True,
        )
        response.headers["Content-Disposition"] = content_disposition(name)
        LOG.info("Serving %s (%d bytes)", name, st.st_size)
        return response

    def list_files_ep(self, request: Request) -> Response:
        """Render the table of stored files."""
        try:
            entries = list_entries(self.config.upload_dir)
        except OSError as exc:
            LOG.error("Failed to read upload directory %s: %s", self.config.upload_dir, exc)
            return _error(500, "Unable to read the upload directory")
        return _html(pages.file_list(entries, request.host_url))

    def _route(self, request: Request) -> Response:
        """Dispatch incoming requests to the appropriate endpoint handler."""
        try:
            path = request.path_info or "/"
        except UnicodeDecodeError:
            return _error(400, "invalid path")
        if path == "/" and request.method == "GET":
            return self.home_ep(request)
        if path == "/upload" and request.method == "POST":
            return self.upload_ep(request)
        if path.startswith(DOWNLOAD_PREFIX) and request.method == "GET":
            return self.download_ep(request, path[len(DOWNLOAD_PREFIX) :])  # noqa: E203
        if path == "/files" and request.method == "GET":
            return self.list_files_ep(request)
        if self._static is not None and request.method in ("GET", "HEAD"):
            return request.get_response(self._static)
        return _error(404, "Not found")

    def __call__(self, environ, start_response):
        """WSGI application callable."""
        request = Request(environ)
        response = self._route(request)
        return response(environ, start_response)


def make_application(conf=CONF) -> RelayApplication:
    """Build the relay application from the registered configuration."""
    return RelayApplication(RelayConfig.from_conf(conf))


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """Threading-based WSGI server."""

    daemon_threads = True
    https = False


class RelayRequestHandler(WSGIRequestHandler):
    """Request handler logging through oslo.log instead of stderr."""

    # None disables the socket timeout.
    timeout = None

    def get_environ(self):
        """Build the WSGI environment, flagging TLS connections."""
        env = super().get_environ()
        if self.server.https:
            env["HTTPS"] = "on"
        return env

    def log_message(self, format, *args):
        """Log access lines with the relay logger."""
        LOG.info("%s - %s", self.address_string(), format % args)


def make_handler_class(timeout: Optional[int]):
    """Return a request handler class applying the given socket timeout."""
    return type("RelayRequestHandler", (RelayRequestHandler,), {"timeout": timeout})


class ThreadingWSGIService(service.ServiceBase):
    """Threading-based WSGI service."""

    def __init__(self, app, config: RelayConfig, ssl_context: ssl.SSLContext | None):
        self._app = app
        self._config = config
        self._ssl_context = ssl_context
        self._httpd = None
        self._thread = None

    def start(self):
        """Start the WSGI service."""
        self._httpd = make_server(
            self._config.host,
            self._config.port,
            self._app,
            server_class=ThreadingWSGIServer,
            handler_class=make_handler_class(self._config.socket_timeout),
        )
        if self._ssl_context is not None:
            self._httpd.socket = self._ssl_context.wrap_socket(
                self._httpd.socket, server_side=True
            )
            self._httpd.https = True
        self._thread = threading.Thread(
            target=self._httpd.serve_forever, name="file-relay", daemon=True
        )
        self._thread.start()

    def stop(self, graceful=True):
        """Stop the WSGI service."""
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()

    def wait(self):
        """Wait for the WSGI service to finish."""
        if self._thread is not None:
            self._thread.join()

    def reset(self, exiting=False):
        """Reset service state (no-op)."""
        return


def main():
    """Parse configuration and run the relay until stopped."""
    logging.register_options(CONF)
    CONF(project="file-relay", prog="file-relay-server", version="1.0.0")
    logging.setup(CONF, "file_relay")

    app = make_application(CONF)
    config = app.config

    ssl_ctx = None
    if sslutils.is_enabled(CONF):
        ssl_ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        ssl_ctx.load_cert_chain(CONF.ssl.cert_file, CONF.ssl.key_file)
        LOG.info("TLS enabled for file relay")
    else:
        LOG.info("TLS disabled for file relay")

    LOG.info("Upload directory: %s", config.upload_dir)
    LOG.info("Maximum upload size: %.2f MiB", config.max_upload_bytes / (1024 * 1024))
    scheme = "https" if ssl_ctx else "http"
    LOG.info("File relay listening on %s://%s:%d", scheme, config.host, config.port)

    service_obj = ThreadingWSGIService(app, config, ssl_ctx)
    launcher = service.ServiceLauncher(CONF)
    launcher.launch_service(service_obj, workers=1)
    launcher.wait()


if __name__ == "__main__":
    main()
