import json
import sys
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from profile_analyzer.core.config import settings  # noqa: E402
from profile_analyzer.main import app  # noqa: E402
from profile_analyzer.services.analysis_service import init_runtime, shutdown_runtime  # noqa: E402
from profile_analyzer.storage.kv_store import MemoryKeyValueStore  # noqa: E402
from profile_analyzer.utils.sse import sse  # noqa: E402

from profile_pages import FULL_PROFILE_HTML, NOT_A_PROFILE_HTML, PROFILE_URL  # noqa: E402


def parse_sse(body: str) -> list[tuple[str, str]]:
    frames = []
    for block in body.strip().split("\n\n"):
        event, data = "", []
        for line in block.splitlines():
            if line.startswith("event: "):
                event = line[len("event: ") :]
            elif line.startswith("data: "):
                data.append(line[len("data: ") :])
        frames.append((event, "\n".join(data)))
    return frames


class SseFormatTests(unittest.TestCase):
    def test_multiline_data(self):
        self.assertEqual(sse("state", "a\nb"), "event: state\ndata: a\ndata: b\n\n")
        self.assertEqual(sse("done", ""), "event: done\ndata: \n\n")


class AnalysisApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.client = TestClient(app)
        cls.headers = {"X-API-Key": settings.api_key} if settings.api_key else {}

    def setUp(self):
        init_runtime(MemoryKeyValueStore())

    def tearDown(self):
        shutdown_runtime()

    def stream(self, **payload):
        response = self.client.post("/v1/analysis/stream", json=payload, headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/event-stream"))
        return parse_sse(response.text)

    def test_health(self):
        response = self.client.get("/v1/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "healthy", "sections": 10})

    def test_stream_contract(self):
        frames = self.stream(url=PROFILE_URL, html=FULL_PROFILE_HTML)
        events = [event for event, _ in frames]
        self.assertEqual(events[-2:], ["result", "done"])
        self.assertEqual(frames[-1][1], "[DONE]")

        states = [json.loads(data)["state"] for event, data in frames if event == "state"]
        self.assertEqual(states[0], "initializing")
        self.assertEqual(states[-1], "complete")

        summary = json.loads(frames[-2][1])
        self.assertEqual(summary["profile_id"], "jane-doe")
        self.assertEqual(summary["state"], "complete")
        self.assertFalse(summary["from_cache"])
        self.assertIsInstance(summary["completeness"]["score"], int)
        self.assertEqual(len(summary["fingerprint"]), 64)

    def test_second_stream_is_served_from_cache(self):
        self.stream(url=PROFILE_URL, html=FULL_PROFILE_HTML)
        frames = self.stream(url=PROFILE_URL, html=FULL_PROFILE_HTML)
        summary = json.loads(frames[-2][1])
        self.assertTrue(summary["from_cache"])

    def test_unsupported_document_streams_error_state(self):
        frames = self.stream(url="https://www.linkedin.com/feed/", html=NOT_A_PROFILE_HTML)
        summary = json.loads(frames[-2][1])
        self.assertEqual(summary["state"], "error")
        self.assertIsNone(summary["profile_id"])
        self.assertEqual(frames[-1][0], "done")

    def test_request_validation(self):
        response = self.client.post("/v1/analysis/stream", json={"url": PROFILE_URL, "html": ""}, headers=self.headers)
        self.assertEqual(response.status_code, 422)
        response = self.client.post(
            "/v1/analysis/stream",
            json={"url": PROFILE_URL, "html": FULL_PROFILE_HTML, "mode": "everything"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 422)

    def test_cache_endpoints(self):
        response = self.client.get("/v1/analysis/cache/jane-doe", headers=self.headers)
        self.assertEqual(response.status_code, 404)

        self.stream(url=PROFILE_URL, html=FULL_PROFILE_HTML)
        response = self.client.get("/v1/analysis/cache/Jane-Doe", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["profile_id"], "jane-doe")
        self.assertIn("completeness", body)

        response = self.client.delete("/v1/analysis/cache/jane-doe", headers=self.headers)
        self.assertEqual(response.json(), {"profile_id": "jane-doe", "deleted": True})
        response = self.client.get("/v1/analysis/cache/jane-doe", headers=self.headers)
        self.assertEqual(response.status_code, 404)

    def test_clear_cache(self):
        self.stream(url=PROFILE_URL, html=FULL_PROFILE_HTML)
        response = self.client.delete("/v1/analysis/cache", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"deleted": 1})

    def test_unavailable_store_returns_503(self):
        store = MemoryKeyValueStore()
        store.available = False
        init_runtime(store)
        response = self.client.get("/v1/analysis/cache/jane-doe", headers=self.headers)
        self.assertEqual(response.status_code, 503)


if __name__ == "__main__":
    unittest.main()
