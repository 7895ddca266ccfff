import unittest

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from remote_ip.client_ip import ResolverConfig
from remote_ip.dependencies import get_remote_ip
from remote_ip.main import app
from remote_ip.middleware import RemoteIpMiddleware


class ApplicationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)

    def test_healthcheck(self) -> None:
        response = self.client.get('/healthz')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'status': 'ok'})

    def test_forwarded_address_is_reported(self) -> None:
        response = self.client.get('/client-ip', headers={'X-Forwarded-For': '10.0.0.1, 10.0.0.4, 10.0.0.11'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'remote_ip': '10.0.0.11', 'peer_ip': 'testclient'})

    def test_peer_address_without_header(self) -> None:
        response = self.client.get('/client-ip')
        self.assertEqual(response.json(), {'remote_ip': 'testclient', 'peer_ip': 'testclient'})


class UntrustedPeerTests(unittest.TestCase):
    def setUp(self) -> None:
        api = FastAPI()
        api.add_middleware(RemoteIpMiddleware, config=ResolverConfig.build('X-Forwarded-For', ['10.0.0.0/8']))

        @api.get('/whoami')
        def whoami(remote_ip: str | None = Depends(get_remote_ip)) -> dict:
            return {'remote_ip': remote_ip}

        self.client = TestClient(api)

    def test_header_from_untrusted_peer_is_ignored(self) -> None:
        response = self.client.get('/whoami', headers={'X-Forwarded-For': '203.0.113.5'})
        self.assertEqual(response.json(), {'remote_ip': 'testclient'})


class DependencyWithoutMiddlewareTests(unittest.TestCase):
    def test_falls_back_to_peer(self) -> None:
        api = FastAPI()

        @api.get('/whoami')
        def whoami(remote_ip: str | None = Depends(get_remote_ip)) -> dict:
            return {'remote_ip': remote_ip}

        response = TestClient(api).get('/whoami', headers={'X-Forwarded-For': '203.0.113.5'})
        self.assertEqual(response.json(), {'remote_ip': 'testclient'})


if __name__ == '__main__':
    unittest.main()
