from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StrictSchema(BaseModel):
    model_config = ConfigDict(extra='forbid')


class HealthRead(StrictSchema):
    status: str = 'ok'


class ClientIpRead(StrictSchema):
    remote_ip: str | None
    peer_ip: str | None
