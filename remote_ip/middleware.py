from __future__ import annotations

import logging

from starlette.types import ASGIApp, Receive, Scope, Send

from remote_ip.client_ip import ResolverConfig, resolve_client_ip

logger = logging.getLogger('remote_ip.middleware')

REMOTE_IP_STATE_KEY = 'remote_ip'


class RemoteIpMiddleware:
    """Attach the resolved client IP to request state.

    Downstream handlers read it as ``request.state.remote_ip``. The connection's
    own ``scope['client']`` is left untouched.
    """

    def __init__(self, app: ASGIApp, config: ResolverConfig | None = None) -> None:
        self.app = app
        self.config = config if config is not None else ResolverConfig.build()
        self._header_key = self.config.header_name.lower().encode('latin-1')

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope['type'] not in ('http', 'websocket'):
            await self.app(scope, receive, send)
            return

        client = scope.get('client')
        peer_ip = client[0] if client else None
        header_value = self._header_line(scope)

        remote_ip = resolve_client_ip(self.config, header_value, peer_ip)
        logger.debug('Resolved remote ip %s (peer=%s, %s=%r)', remote_ip, peer_ip, self.config.header_name, header_value)

        scope.setdefault('state', {})[REMOTE_IP_STATE_KEY] = remote_ip
        await self.app(scope, receive, send)

    def _header_line(self, scope: Scope) -> str | None:
        values = [
            value.decode('latin-1')
            for key, value in scope.get('headers') or []
            if key.lower() == self._header_key
        ]
        if not values:
            return None
        return ', '.join(values)
