"""Subtitle pipeline endpoint tests."""

from __future__ import annotations

import os
from pathlib import Path
import tempfile
import unittest

from fastapi.testclient import TestClient
import httpx

from app.adapters.speech7.client import Speech7Client
from app.adapters.transcoder.base import AudioExtractor, TranscodeError
from app.core.config import Settings, get_settings
from app.main import create_app
from app.routes.dependencies import get_subtitle_service
from app.services.subtitles import SubtitleFile, SubtitleService


class _FakeExtractor(AudioExtractor):
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[Path, Path]] = []

    async def extract_mono_audio(self, input_path: Path, output_path: Path) -> Path:
        self.calls.append((input_path, output_path))
        # Leave a partial file behind so cleanup is exercised on failure too.
        output_path.write_bytes(b"ID3-audio")
        if self.fail:
            raise TranscodeError("ffmpeg exited with code 1", stderr="moov atom not found", exit_code=1)
        return output_path


class _FakeSpeech7:
    """In-memory Speech7 endpoint keyed by request path."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}

    def respond(self, method: str, path: str, response: httpx.Response) -> None:
        self.routes[(method, path)] = response

    def paths(self, method: str | None = None) -> list[str]:
        return [r.url.path for r in self.requests if method is None or r.method == method]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)


class _DroppingStream(httpx.AsyncByteStream):
    """Yields one chunk, then fails the way a reset upstream socket does."""

    def __init__(self) -> None:
        self.closed = False

    async def __aiter__(self):
        yield b"1\n"
        raise httpx.ReadError("connection reset by peer")

    async def aclose(self) -> None:
        self.closed = True


class SubtitleFileStreamTests(unittest.IsolatedAsyncioTestCase):
    async def test_stream_closes_response_when_remote_drops_mid_body(self) -> None:
        stream = _DroppingStream()
        subtitle = SubtitleFile(token="abc", response=httpx.Response(200, stream=stream))
        received: list[bytes] = []

        with self.assertRaises(httpx.ReadError):
            async for chunk in subtitle.iter_bytes():
                received.append(chunk)

        self.assertEqual(received, [b"1\n"])
        self.assertTrue(stream.closed)

    async def test_stream_closes_response_after_full_body(self) -> None:
        response = httpx.Response(200, content=b"srt")
        subtitle = SubtitleFile(token="abc", response=response)

        payload = b"".join([chunk async for chunk in subtitle.iter_bytes()])

        self.assertEqual(payload, b"srt")
        self.assertTrue(response.is_closed)


class SubtitleApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.settings = Settings(
            _env_file=None,
            tmp_dir=root,
            ffmpeg_path="ffmpeg",
            speech7_base_url="https://speech7.test",
            speech7_api_key="",
            speech7_auth_header="x-api-key",
            speech7_auth_prefix="",
            speech7_key_query_param="",
            speech7_download_suffix="file",
            speech7_upload_field="audio",
            speech7_language="en",
        )
        self.settings.upload_dir.mkdir(parents=True)
        self.settings.audio_dir.mkdir(parents=True)

        self.remote = _FakeSpeech7()
        self.http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.remote))
        self.extractor = _FakeExtractor()

        self.app = create_app()
        self.app.dependency_overrides[get_settings] = lambda: self.settings
        self.app.dependency_overrides[get_subtitle_service] = lambda: SubtitleService(
            settings=self.settings,
            client=Speech7Client(self.http_client, self.settings, delay_ms=0),
            extractor=self.extractor,
        )
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.client.close()
        self._tmp.cleanup()

    def _stored_files(self) -> list[str]:
        return os.listdir(self.settings.upload_dir) + os.listdir(self.settings.audio_dir)

    def _post_video(self, **kwargs) -> httpx.Response:
        return self.client.post(
            "/subtitle",
            files={"video": ("Holiday Clip.mp4", b"fake-video-bytes", "video/mp4")},
            **kwargs,
        )

    def test_health_reports_ok_and_time(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertIs(response.json()["ok"], True)
        self.assertIn("time", response.json())

    def test_submit_returns_token_and_derived_urls_and_cleans_up(self) -> None:
        self.remote.respond("POST", "/subtitle/jobs", httpx.Response(200, json={"id": "abc", "jobId": "xyz"}))

        response = self._post_video(headers={"x-api-key": "caller-key"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {
                "message": "submitted",
                "token": "abc",
                "statusUrl": "https://speech7.test/subtitle/jobs/abc",
                "downloadUrl": "https://speech7.test/subtitle/jobs/abc/file",
                "speech7": {"id": "abc", "jobId": "xyz"},
            },
        )
        upload = self.remote.requests[0]
        self.assertEqual(upload.headers["x-api-key"], "caller-key")
        self.assertIn(b'filename="Holiday Clip.mp3"', upload.content)
        self.assertEqual(len(self.extractor.calls), 1)
        self.assertEqual(self._stored_files(), [])

    def test_submit_resolves_relative_urls_from_remote_body(self) -> None:
        self.remote.respond(
            "POST",
            "/subtitle/jobs",
            httpx.Response(200, json={"token": "t-1", "statusUrl": "/api/status/t-1", "downloadUrl": "files/t-1.srt"}),
        )

        body = self._post_video(headers={"x-api-key": "k"}).json()

        self.assertEqual(body["statusUrl"], "https://speech7.test/api/status/t-1")
        self.assertEqual(body["downloadUrl"], "https://speech7.test/subtitle/jobs/files/t-1.srt")

    def test_submit_without_token_returns_null_urls(self) -> None:
        self.remote.respond("POST", "/subtitle/jobs", httpx.Response(200, json={"accepted": True}))

        body = self._post_video(headers={"x-api-key": "k"}).json()

        self.assertIsNone(body["token"])
        self.assertIsNone(body["statusUrl"])
        self.assertIsNone(body["downloadUrl"])
        self.assertEqual(body["speech7"], {"accepted": True})

    def test_submit_accepts_api_key_form_field(self) -> None:
        self.remote.respond("POST", "/subtitle/jobs", httpx.Response(200, json={"token": "t"}))

        response = self._post_video(data={"apiKey": "form-key"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.remote.requests[0].headers["x-api-key"], "form-key")

    def test_submit_without_video_is_rejected(self) -> None:
        response = self.client.post("/subtitle", data={"apiKey": "k"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")
        self.assertEqual(self.remote.requests, [])

    def test_submit_without_key_is_rejected_before_any_work(self) -> None:
        response = self._post_video()

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")
        self.assertEqual(self.extractor.calls, [])
        self.assertEqual(self.remote.requests, [])
        self.assertEqual(self._stored_files(), [])

    def test_submit_uses_configured_default_key(self) -> None:
        self.settings.speech7_api_key = "env-key"
        self.remote.respond("POST", "/subtitle/jobs", httpx.Response(200, json={"token": "t"}))

        response = self._post_video()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.remote.requests[0].headers["x-api-key"], "env-key")

    def test_transcode_failure_returns_500_with_diagnostics_and_cleans_up(self) -> None:
        self.extractor.fail = True

        response = self._post_video(headers={"x-api-key": "k"})

        self.assertEqual(response.status_code, 500)
        payload = response.json()
        self.assertEqual(payload["code"], "TRANSCODE_FAILED")
        self.assertEqual(payload["details"]["stderr"], "moov atom not found")
        self.assertEqual(payload["details"]["exit_code"], 1)
        self.assertEqual(self.remote.requests, [])
        self.assertEqual(self._stored_files(), [])

    def test_remote_rejection_propagates_status_and_cleans_up(self) -> None:
        self.remote.respond("POST", "/subtitle/jobs", httpx.Response(401, json={"error": "invalid key"}))

        response = self._post_video(headers={"x-api-key": "bad"})

        self.assertEqual(response.status_code, 401)
        payload = response.json()
        self.assertEqual(payload["code"], "REMOTE_SERVICE_ERROR")
        self.assertEqual(payload["details"]["status"], 401)
        self.assertEqual(payload["details"]["response"], {"error": "invalid key"})
        self.assertEqual(self._stored_files(), [])

    def test_oversized_upload_is_rejected_and_removed(self) -> None:
        self.settings.max_upload_bytes = 4

        response = self._post_video(headers={"x-api-key": "k"})

        self.assertEqual(response.status_code, 413)
        self.assertEqual(response.json()["code"], "UPLOAD_TOO_LARGE")
        self.assertEqual(self.extractor.calls, [])
        self.assertEqual(self._stored_files(), [])

    def test_status_proxies_remote_body(self) -> None:
        self.remote.respond("GET", "/subtitle/jobs/abc", httpx.Response(200, json={"status": "processing"}))

        response = self.client.get("/subtitle/abc", headers={"x-api-key": "k"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"token": "abc", "speech7": {"status": "processing"}})

    def test_status_accepts_query_key_and_status_url_override(self) -> None:
        self.remote.respond("GET", "/custom/abc", httpx.Response(200, json={"status": "queued"}))

        response = self.client.get("/subtitle/abc", params={"apiKey": "q-key", "statusUrl": "/custom/abc"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.remote.requests[0].headers["x-api-key"], "q-key")
        self.assertEqual(self.remote.paths(), ["/custom/abc"])

    def test_status_query_token_overrides_path(self) -> None:
        self.remote.respond("GET", "/subtitle/jobs/real", httpx.Response(200, json={"status": "queued"}))

        response = self.client.get("/subtitle/placeholder", params={"token": "real"}, headers={"x-api-key": "k"})

        self.assertEqual(response.json()["token"], "real")

    def test_status_without_key_is_rejected(self) -> None:
        response = self.client.get("/subtitle/abc")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.remote.requests, [])

    def test_status_remote_error_keeps_remote_status(self) -> None:
        self.remote.respond("GET", "/subtitle/jobs/gone", httpx.Response(404, json={"error": "unknown job"}))

        response = self.client.get("/subtitle/gone", headers={"x-api-key": "k"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["details"]["response"], {"error": "unknown job"})
        self.assertEqual(len(self.remote.requests), 1)

    def test_file_returns_202_while_processing_without_download(self) -> None:
        self.remote.respond("GET", "/subtitle/jobs/abc", httpx.Response(200, json={"status": "processing"}))

        response = self.client.get("/subtitle/abc/file", headers={"x-api-key": "k"})

        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json(), {"status": "processing", "speech7": {"status": "processing"}})
        self.assertEqual(self.remote.paths(), ["/subtitle/jobs/abc"])

    def test_file_returns_202_with_default_status_for_empty_body(self) -> None:
        self.remote.respond("GET", "/subtitle/jobs/abc", httpx.Response(200, content=b""))

        response = self.client.get("/subtitle/abc/file", headers={"x-api-key": "k"})

        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json()["status"], "processing")

    def test_file_streams_srt_when_completed(self) -> None:
        srt = b"1\n00:00:00,000 --> 00:00:02,000\nHello\n"
        self.remote.respond(
            "GET",
            "/subtitle/jobs/abc",
            httpx.Response(200, json={"status": "completed", "downloadUrl": "/x/y"}),
        )
        self.remote.respond("GET", "/x/y", httpx.Response(200, content=srt))

        response = self.client.get("/subtitle/abc/file", headers={"x-api-key": "k"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, srt)
        self.assertEqual(response.headers["content-type"], "application/x-subrip; charset=utf-8")
        self.assertEqual(response.headers["content-disposition"], 'attachment; filename="abc.srt"')
        self.assertEqual(self.remote.paths(), ["/subtitle/jobs/abc", "/x/y"])
        self.assertEqual(str(self.remote.requests[1].url), "https://speech7.test/x/y")
        self.assertEqual(self.remote.requests[1].headers["x-api-key"], "k")

    def test_file_download_override_wins_over_status_body(self) -> None:
        self.remote.respond(
            "GET",
            "/subtitle/jobs/abc",
            httpx.Response(200, json={"status": "completed", "file": "/from-status"}),
        )
        self.remote.respond("GET", "/override.srt", httpx.Response(200, content=b"srt"))

        response = self.client.get(
            "/subtitle/abc/file",
            params={"downloadUrl": "https://speech7.test/override.srt"},
            headers={"x-api-key": "k"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.remote.paths(), ["/subtitle/jobs/abc", "/override.srt"])

    def test_file_falls_back_to_derived_download_url(self) -> None:
        self.remote.respond("GET", "/subtitle/jobs/abc", httpx.Response(200, json={"status": "completed"}))
        self.remote.respond("GET", "/subtitle/jobs/abc/file", httpx.Response(200, content=b"srt"))

        response = self.client.get("/subtitle/abc/file", headers={"x-api-key": "k"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"srt")

    def test_file_download_failure_keeps_remote_status(self) -> None:
        self.remote.respond("GET", "/subtitle/jobs/abc", httpx.Response(200, json={"status": "completed"}))
        self.remote.respond("GET", "/subtitle/jobs/abc/file", httpx.Response(410, json={"error": "expired"}))

        response = self.client.get("/subtitle/abc/file", headers={"x-api-key": "k"})

        self.assertEqual(response.status_code, 410)
        self.assertEqual(response.json()["code"], "REMOTE_SERVICE_ERROR")

    def test_openapi_documents_contract_response_codes(self) -> None:
        paths = self.client.get("/openapi.json").json()["paths"]

        self.assertEqual(set(paths["/subtitle"]["post"]["responses"].keys()), {"200", "400", "413", "500"})
        self.assertEqual(set(paths["/subtitle/{token}"]["get"]["responses"].keys()), {"200", "400", "500"})
        self.assertEqual(
            set(paths["/subtitle/{token}/file"]["get"]["responses"].keys()),
            {"200", "202", "400", "500"},
        )
