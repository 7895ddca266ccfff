import json
from functools import lru_cache
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from remote_ip.client_ip import DEFAULT_REMOTE_IP_HEADER


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    app_name: str = 'Remote IP Service'
    debug: bool = False

    remote_ip_header: str = Field(default=DEFAULT_REMOTE_IP_HEADER, min_length=1)
    # Empty list trusts the forwarding header from every peer.
    trusted_hosts: Annotated[List[str], NoDecode] = Field(default_factory=list)

    @field_validator('trusted_hosts', mode='before')
    @classmethod
    def split_trusted_hosts(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith('['):
                parsed = json.loads(stripped)
                if isinstance(parsed, list):
                    return [str(item).strip() for item in parsed if str(item).strip()]
            return [item.strip() for item in value.split(',') if item.strip()]
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
