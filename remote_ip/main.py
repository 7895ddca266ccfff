import logging

from fastapi import Depends, FastAPI

from remote_ip.client_ip import ResolverConfig
from remote_ip.config import get_settings
from remote_ip.dependencies import get_peer_ip, get_remote_ip
from remote_ip.middleware import RemoteIpMiddleware
from remote_ip.schemas import ClientIpRead, HealthRead

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)
logger = logging.getLogger('remote_ip')

# Raises ConfigError on a bad header name or trusted host; the app must not start.
resolver_config = ResolverConfig.from_settings(settings)

app = FastAPI(title=settings.app_name, version='1.0.0')

app.add_middleware(RemoteIpMiddleware, config=resolver_config)


@app.on_event('startup')
def on_startup() -> None:
    logger.info('Remote IP service ready (header=%s)', resolver_config.header_name)


@app.get('/healthz', response_model=HealthRead)
def healthcheck() -> HealthRead:
    return HealthRead()


@app.get('/client-ip', response_model=ClientIpRead)
def client_ip(
    remote_ip: str | None = Depends(get_remote_ip),
    peer_ip: str | None = Depends(get_peer_ip),
) -> ClientIpRead:
    return ClientIpRead(remote_ip=remote_ip, peer_ip=peer_ip)
