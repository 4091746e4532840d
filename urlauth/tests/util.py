"""Local authorization server for exercising real HTTP exchanges."""

import threading
import time
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Generator, List, Tuple
from urllib.parse import parse_qs


class AuthServerHandler(BaseHTTPRequestHandler):
    """Answers callouts according to the request path."""

    hits: List[Tuple[str, str, dict]] = []

    def _record(self, method: str) -> None:
        length = int(self.headers.get('Content-Length', 0))
        body = self.rfile.read(length).decode('utf-8') if length else ''
        self.hits.append((method, self.path,
                          parse_qs(body, keep_blank_values=True)))

    def _write(self, data: bytes) -> None:
        try:
            self.wfile.write(data)
        except OSError:
            pass    # The client hung up on us.

    def do_POST(self) -> None:
        self._record('POST')
        if self.path == '/accept':
            self.send_response(200)
            self.send_header('icecast-auth-user', '1')
            self.send_header('Content-Length', '0')
            self.end_headers()
        elif self.path == '/reject':
            self.send_response(200)
            self.send_header('icecast-auth-message', 'bad password')
            self.send_header('Content-Length', '0')
            self.end_headers()
        elif self.path == '/redirect':
            self.send_response(302)
            self.send_header('icecast-auth-user', '1')
            self.send_header('Location', '/final')
            self.send_header('Content-Length', '0')
            self.end_headers()
        elif self.path == '/repeated':
            self.send_response(200)
            self.send_header('icecast-auth-user', '1')
            self.send_header('icecast-auth-user', '1')
            self.send_header('Content-Length', '0')
            self.end_headers()
        elif self.path == '/nospace':
            self._write(b'HTTP/1.0 200 OK\r\n'
                        b'icecast-auth-user:1\r\n'
                        b'Content-Length: 0\r\n\r\n')
        elif self.path == '/trickle':
            self.send_response(200)
            self.send_header('icecast-auth-user', '1')
            self.send_header('Content-Length', '8')
            self.end_headers()
            for _ in range(8):
                time.sleep(0.5)
                self._write(b'x')
        elif self.path == '/slow-headers':
            self._write(b'HTTP/1.0 200 OK\r\n')
            for _ in range(3):
                time.sleep(0.6)
                self._write(b'X-Waiting: 1\r\n')
            self._write(b'Content-Length: 0\r\n\r\n')
        else:
            self.send_response(404)
            self.send_header('Content-Length', '0')
            self.end_headers()

    def do_GET(self) -> None:
        self._record('GET')
        self.send_response(200)
        self.send_header('Content-Length', '0')
        self.end_headers()

    def log_message(self, format, *args):
        pass


@contextmanager
def auth_server() -> Generator[Tuple[str, list], None, None]:
    """Run an authorization server on a free local port."""
    hits: list = []
    handler = type('Handler', (AuthServerHandler,), {'hits': hits})
    server = ThreadingHTTPServer(('127.0.0.1', 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f'http://127.0.0.1:{server.server_address[1]}', hits
    finally:
        server.shutdown()
        server.server_close()
