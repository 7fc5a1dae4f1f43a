import json
import unittest
from collections.abc import AsyncIterator, Callable

import httpx
from fastapi.testclient import TestClient

from chat_gateway.app import create_app
from chat_gateway.config import BackendId, Settings
from chat_gateway.errors import InvalidRequestError
from chat_gateway.forwarder import Forwarder
from chat_gateway.gateway import ChatGateway, parse_request

CHAT_PATH = "/api/v1/chat/completions"
OLLAMA_CHUNKS = [
    b'{"message":{"role":"assistant","content":"he"},"done":false}',
    b"",
    b'{"message":{"role":"assistant","content":"llo"},"done":true}',
]


def _chunked(chunks: list[bytes]) -> Callable[[], AsyncIterator[bytes]]:
    async def _gen() -> AsyncIterator[bytes]:
        for chunk in chunks:
            yield chunk

    return _gen


async def _no_sleep(seconds: float) -> None:
    return None


class GatewayAppTests(unittest.TestCase):
    def _client(self, backend: BackendId, handler) -> TestClient:
        settings = Settings(llm_backend=backend, ollama_host="ollama.local:11434")
        forwarder = Forwarder(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        gateway = ChatGateway(settings, forwarder, sleep=_no_sleep)
        return TestClient(create_app(settings, forwarder, gateway))

    def test_ollama_chunks_relayed_in_order(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=_chunked(OLLAMA_CHUNKS)())

        payload = {"model": "", "messages": [{"role": "user", "content": "hi"}]}
        with self._client(BackendId.OLLAMA, handler) as client:
            resp = client.post(CHAT_PATH, json=payload, headers={"Authorization": "Bearer k", "X-Trace": "t1"})

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("application/json"))
        self.assertEqual(resp.headers["cache-control"], "no-cache")
        self.assertEqual(resp.text, (OLLAMA_CHUNKS[0] + OLLAMA_CHUNKS[2]).decode())

        upstream = seen[0]
        self.assertEqual(str(upstream.url), "http://ollama.local:11434/api/chat")
        self.assertEqual(upstream.headers["authorization"], "Bearer k")
        self.assertEqual(upstream.headers["x-trace"], "t1")
        self.assertEqual(upstream.headers["host"], "ollama.local:11434")
        body = json.loads(upstream.content)
        self.assertEqual(body["model"], "deepseek-r1:1.5b")
        self.assertEqual(body["messages"], [{"role": "user", "content": "hi"}])
        self.assertEqual(body["temperature"], 0.7)
        self.assertIs(body["stream"], False)
        self.assertEqual(body["max_tokens"], 4096)

    def test_glm_stream_passed_through(self) -> None:
        sse = [b'data: {"choices":[{"delta":{"content":"hi"}}]}\n\n', b"data: [DONE]\n\n"]
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=_chunked(sse)())

        payload = {"model": "gpt-4o", "messages": [{"role": "user", "content": [{"type": "text", "text": "hi"}]}], "stream": True}
        with self._client(BackendId.GLM, handler) as client:
            resp = client.post(CHAT_PATH, json=payload)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.text, b"".join(sse).decode())
        self.assertEqual(str(seen[0].url), "https://open.bigmodel.cn/api/paas/v4/chat/completions")
        body = json.loads(seen[0].content)
        self.assertEqual(body["model"], "glm-4-long")
        self.assertIs(body["stream"], True)
        self.assertEqual(body["messages"][0]["content"], "hi")

    def test_upstream_status_error_becomes_envelope(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, content=b"overloaded")

        with self._client(BackendId.KIMI, handler) as client:
            resp = client.post(CHAT_PATH, json={"model": "x", "messages": []})

        self.assertEqual(resp.status_code, 500)
        error = resp.json()["error"]
        self.assertEqual(error["type"], "UpstreamHTTPError")
        self.assertIn("503", error["message"])
        self.assertIn("overloaded", error["message"])

    def test_invalid_body_becomes_envelope(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("backend must not be called")

        with self._client(BackendId.GLM, handler) as client:
            resp = client.post(CHAT_PATH, content=b"{not json", headers={"Content-Type": "application/json"})

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["error"]["type"], "InvalidRequestError")

    def test_connect_failure_becomes_envelope(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with self._client(BackendId.OLLAMA, handler) as client:
            resp = client.post(CHAT_PATH, json={"model": "m", "messages": []})

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": {"message": "connection refused", "type": "ConnectError"}})

    def test_error_chunk_before_output_becomes_envelope(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=_chunked([b'{"error":"model not found"}'])())

        with self._client(BackendId.OLLAMA, handler) as client:
            resp = client.post(CHAT_PATH, json={"model": "m", "messages": []})

        self.assertEqual(resp.status_code, 500)
        error = resp.json()["error"]
        self.assertEqual(error["type"], "UpstreamReportedError")
        self.assertIn("model not found", error["message"])

    def test_error_chunk_after_output_ends_stream_early(self) -> None:
        chunks = [b"data: one\n\n", b'data: {"error":{"message":"quota"}}\n\n', b"data: two\n\n"]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=_chunked(chunks)())

        with self._client(BackendId.KIMI, handler) as client:
            resp = client.post(CHAT_PATH, json={"model": "m", "messages": []})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.text, "data: one\n\n")

    def test_empty_upstream_body_gives_empty_stream(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"")

        with self._client(BackendId.GLM, handler) as client:
            resp = client.post(CHAT_PATH, json={"messages": []})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.text, "")

    def test_index_greets(self) -> None:
        with self._client(BackendId.GLM, lambda request: httpx.Response(200)) as client:
            resp = client.get("/", headers={"User-Agent": "tests"})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.text.startswith("Hello World! Current time: "))


class ChatGatewayTests(unittest.IsolatedAsyncioTestCase):
    async def test_backend_override_per_call(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, content=b"data: x\n\n")

        forwarder = Forwarder(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        gateway = ChatGateway(Settings(llm_backend=BackendId.GLM), forwarder, sleep=_no_sleep)
        self.assertIs(gateway.backend_id, BackendId.GLM)

        response = await gateway.handle(b'{"messages":[]}', [], backend_id=BackendId.KIMI)
        body = [chunk async for chunk in response.body_iterator]
        await forwarder.aclose()

        self.assertEqual(body, ["data: x\n\n"])
        self.assertEqual(seen, ["https://api.moonshot.cn/v1/chat/completions"])

    async def test_constructor_backend_wins_over_settings(self) -> None:
        forwarder = Forwarder(httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))))
        gateway = ChatGateway(Settings(llm_backend=BackendId.GLM), forwarder, backend_id=BackendId.OLLAMA)
        self.assertIs(gateway.backend_id, BackendId.OLLAMA)
        await forwarder.aclose()


class ParseRequestTests(unittest.TestCase):
    def test_defaults(self) -> None:
        req = parse_request('{"messages":[{"role":"user","content":"hi"}],"extra":1}')
        self.assertIsNone(req.model)
        self.assertIsNone(req.temperature)
        self.assertIs(req.stream, False)
        self.assertEqual(req.messages[0].content, "hi")

    def test_rejects_wrong_shape(self) -> None:
        with self.assertRaises(InvalidRequestError):
            parse_request('{"messages": "nope"}')
        with self.assertRaises(InvalidRequestError):
            parse_request(b"")


if __name__ == "__main__":
    unittest.main()
