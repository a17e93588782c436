"""Building blocks for reverse proxies and tunnels: vhost and TLS server-name routing, connection wrappers, rate limiting, backoff and metrics."""

__version__ = "0.58.1"