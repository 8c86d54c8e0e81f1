import json
import re
import threading
from unittest.mock import MagicMock

import httpx
import pytest

from app.config.settings import Settings
from app.credentials.base import BaseCredentialRequester
from app.credentials.exceptions import UpstreamCredentialError
from app.credentials.http_requester import HttpCredentialRequester
from app.processing.base import BaseNotifier, BaseStatusSource
from app.processing.models import AnalysisStatus, NotifyResult, StatusSnapshot
from app.processing.simulated import SimulatedNotifier
from app.transfer.base import BaseTransferAgent
from app.transfer.exceptions import TransferTimeoutError
from app.transfer.httpx_agent import HttpxTransferAgent
from app.upload.exceptions import (
    ConcurrentUploadError,
    InvalidTransitionError,
    NoFileSelectedError,
)
from app.upload.models import (
    Error,
    Idle,
    Success,
    TransferProgress,
    UploadCredentials,
    UploadRequest,
    Uploading,
)
from app.upload.orchestrator import UploadOrchestrator, build_orchestrator
from app.upload.pipeline import UploadPipeline
from app.upload.steps import NotifyStep, RequestCredentialsStep, TransferStep

_MAX = 50 * 1024 * 1024
_TRACKING_ID = re.compile(r"^analysis-\d+-[a-z0-9]{9}$")


class _Harness:
    def __init__(self, credentials: UploadCredentials) -> None:
        self.requester = MagicMock(spec=BaseCredentialRequester)
        self.transfer_agent = MagicMock(spec=BaseTransferAgent)
        self.notifier = MagicMock(spec=BaseNotifier)
        self.status_source = MagicMock(spec=BaseStatusSource)
        self.on_complete = MagicMock()
        self.on_error = MagicMock()

        self.requester.request_credentials.return_value = credentials
        self.transfer_agent.transfer.return_value = "parcel.kml"
        self.notifier.notify.return_value = NotifyResult(tracking_id="analysis-1-abcdefghi")

        pipeline = UploadPipeline(
            steps=[
                RequestCredentialsStep(self.requester),
                TransferStep(self.transfer_agent),
                NotifyStep(self.notifier),
            ]
        )
        self.orchestrator = UploadOrchestrator(
            pipeline,
            max_size_bytes=_MAX,
            allowed_extensions=[".kml", ".kmz"],
            status_source=self.status_source,
            poll_interval_seconds=0,
            on_complete=self.on_complete,
            on_error=self.on_error,
        )


@pytest.fixture()
def harness(parcel_credentials: UploadCredentials) -> _Harness:
    return _Harness(parcel_credentials)


class TestSelectFile:
    def test_valid_file_is_selected(self, harness: _Harness, parcel_request: UploadRequest) -> None:
        state = harness.orchestrator.select_file(parcel_request)

        assert state == Idle()
        assert harness.orchestrator.selected_file == parcel_request

    def test_unsupported_type_sets_error_without_network(self, harness: _Harness) -> None:
        png = UploadRequest.from_bytes("map.png", b"\x89PNG", mime_type="image/png")

        state = harness.orchestrator.select_file(png)

        assert isinstance(state, Error)
        assert ".kml" in state.message
        assert harness.orchestrator.state == state
        assert harness.orchestrator.selected_file is None
        harness.on_error.assert_called_once_with(state.message)
        harness.requester.request_credentials.assert_not_called()

    def test_too_large_sets_error(self, harness: _Harness) -> None:
        big = UploadRequest(file_name="huge.kml", mime_type="", size_bytes=_MAX + 1)

        state = harness.orchestrator.select_file(big)

        assert isinstance(state, Error)
        assert "50MB" in state.message

    def test_reselect_clears_error(self, harness: _Harness, parcel_request: UploadRequest) -> None:
        harness.orchestrator.select_file(UploadRequest.from_bytes("map.png", b"x"))

        state = harness.orchestrator.select_file(parcel_request)

        assert state == Idle()
        assert harness.orchestrator.selected_file == parcel_request


class TestStartUpload:
    def test_requires_selected_file(self, harness: _Harness) -> None:
        with pytest.raises(NoFileSelectedError):
            harness.orchestrator.start_upload()

    def test_success_transitions_and_calls_back(
        self, harness: _Harness, parcel_request: UploadRequest, parcel_credentials: UploadCredentials
    ) -> None:
        harness.orchestrator.select_file(parcel_request)

        state = harness.orchestrator.start_upload()

        assert state == Success(file_key="parcel.kml", tracking_id="analysis-1-abcdefghi")
        assert harness.orchestrator.state == state
        assert harness.orchestrator.credentials == parcel_credentials
        harness.on_complete.assert_called_once_with("parcel.kml", "analysis-1-abcdefghi")
        harness.on_error.assert_not_called()

    def test_state_is_uploading_while_transferring(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        observed: list[object] = []

        def _transfer(file, credentials, on_progress):
            observed.append(harness.orchestrator.state)
            on_progress(TransferProgress.of(file.size_bytes // 2, file.size_bytes))
            observed.append(harness.orchestrator.state)
            return "parcel.kml"

        harness.transfer_agent.transfer.side_effect = _transfer
        harness.orchestrator.select_file(parcel_request)

        harness.orchestrator.start_upload()

        assert isinstance(observed[0], Uploading)
        assert observed[0].progress.percentage == 0
        assert observed[1] == Uploading(
            TransferProgress.of(parcel_request.size_bytes // 2, parcel_request.size_bytes)
        )

    def test_stage_failure_sets_error_and_halts(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        harness.transfer_agent.transfer.side_effect = TransferTimeoutError("Upload timed out")
        harness.orchestrator.select_file(parcel_request)

        state = harness.orchestrator.start_upload()

        assert state == Error("Upload timed out")
        harness.notifier.notify.assert_not_called()
        harness.on_error.assert_called_once_with("Upload timed out")
        harness.on_complete.assert_not_called()

    def test_credential_failure_stops_before_transfer(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        harness.requester.request_credentials.side_effect = UpstreamCredentialError(500)
        harness.orchestrator.select_file(parcel_request)

        state = harness.orchestrator.start_upload()

        assert isinstance(state, Error)
        assert "500" in state.message
        harness.transfer_agent.transfer.assert_not_called()

    def test_unexpected_error_becomes_generic_message(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        harness.notifier.notify.side_effect = RuntimeError("kaboom")
        harness.orchestrator.select_file(parcel_request)

        state = harness.orchestrator.start_upload()

        assert state == Error("Upload failed")

    def test_restart_from_error_requires_reset(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        harness.transfer_agent.transfer.side_effect = TransferTimeoutError("Upload timed out")
        harness.orchestrator.select_file(parcel_request)
        harness.orchestrator.start_upload()

        with pytest.raises(InvalidTransitionError, match="reset"):
            harness.orchestrator.start_upload()


class TestConcurrency:
    def test_second_start_while_uploading_is_rejected(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        rejections: list[Exception] = []

        def _transfer(file, credentials, on_progress):
            with pytest.raises(ConcurrentUploadError) as exc_info:
                harness.orchestrator.start_upload()
            rejections.append(exc_info.value)
            return "parcel.kml"

        harness.transfer_agent.transfer.side_effect = _transfer
        harness.orchestrator.select_file(parcel_request)

        state = harness.orchestrator.start_upload()

        assert len(rejections) == 1
        assert isinstance(state, Success)
        harness.requester.request_credentials.assert_called_once()

    def test_select_while_uploading_is_rejected(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        def _transfer(file, credentials, on_progress):
            with pytest.raises(ConcurrentUploadError):
                harness.orchestrator.select_file(parcel_request)
            return "parcel.kml"

        harness.transfer_agent.transfer.side_effect = _transfer
        harness.orchestrator.select_file(parcel_request)

        assert isinstance(harness.orchestrator.start_upload(), Success)

    def test_reset_during_upload_discards_late_results(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        def _transfer(file, credentials, on_progress):
            harness.orchestrator.reset()
            on_progress(TransferProgress.of(1, 2))
            return "parcel.kml"

        harness.transfer_agent.transfer.side_effect = _transfer
        harness.orchestrator.select_file(parcel_request)

        state = harness.orchestrator.start_upload()

        assert state == Idle()
        assert harness.orchestrator.state == Idle()
        harness.on_complete.assert_not_called()

    def test_restart_after_reset_waits_for_running_transfer(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        transferring = threading.Event()
        release = threading.Event()
        in_flight: list[int] = []
        peak: list[int] = []

        def _transfer(file, credentials, on_progress):
            in_flight.append(1)
            peak.append(len(in_flight))
            transferring.set()
            release.wait(5)
            in_flight.pop()
            return "parcel.kml"

        harness.transfer_agent.transfer.side_effect = _transfer
        harness.orchestrator.select_file(parcel_request)
        first = threading.Thread(target=harness.orchestrator.start_upload)
        first.start()
        assert transferring.wait(5)

        harness.orchestrator.reset()
        with pytest.raises(ConcurrentUploadError):
            harness.orchestrator.select_file(parcel_request)
        with pytest.raises(ConcurrentUploadError):
            harness.orchestrator.start_upload()

        release.set()
        first.join(5)
        assert harness.orchestrator.state == Idle()
        harness.on_complete.assert_not_called()

        harness.orchestrator.select_file(parcel_request)
        assert isinstance(harness.orchestrator.start_upload(), Success)
        assert max(peak) == 1
        assert harness.transfer_agent.transfer.call_count == 2


class TestReset:
    def test_reset_from_success_clears_selection(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        harness.orchestrator.select_file(parcel_request)
        harness.orchestrator.start_upload()

        state = harness.orchestrator.reset()

        assert state == Idle()
        assert harness.orchestrator.selected_file is None
        assert harness.orchestrator.credentials is None

    def test_fresh_attempt_after_reset(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        harness.orchestrator.select_file(parcel_request)
        harness.orchestrator.start_upload()
        harness.orchestrator.reset()
        harness.notifier.notify.return_value = NotifyResult(tracking_id="analysis-2-zyxwvutsr")

        harness.orchestrator.select_file(parcel_request)
        state = harness.orchestrator.start_upload()

        assert state == Success(file_key="parcel.kml", tracking_id="analysis-2-zyxwvutsr")
        assert harness.requester.request_credentials.call_count == 2


class TestTracking:
    def test_track_requires_success(self, harness: _Harness) -> None:
        with pytest.raises(InvalidTransitionError):
            harness.orchestrator.track(background=False)

    def test_track_polls_until_completed(
        self, harness: _Harness, parcel_request: UploadRequest
    ) -> None:
        harness.status_source.check.side_effect = [
            StatusSnapshot(status=AnalysisStatus.PROCESSING, progress=30),
            StatusSnapshot(status=AnalysisStatus.COMPLETED, progress=100),
        ]
        harness.orchestrator.select_file(parcel_request)
        harness.orchestrator.start_upload()

        records = list(harness.orchestrator.track(background=False))

        assert [r.status for r in records] == [AnalysisStatus.PROCESSING, AnalysisStatus.COMPLETED]
        assert records[0].tracking_id == "analysis-1-abcdefghi"
        assert records[0].source_file_name == "parcel.kml"
        harness.status_source.check.assert_called_with("analysis-1-abcdefghi")

    def test_reset_stops_pollers(self, harness: _Harness, parcel_request: UploadRequest) -> None:
        harness.orchestrator.select_file(parcel_request)
        harness.orchestrator.start_upload()
        poller = harness.orchestrator.track(background=False)

        harness.orchestrator.reset()

        assert poller.stopped
        assert list(poller) == []

    def test_close_stops_pollers(self, harness: _Harness, parcel_request: UploadRequest) -> None:
        harness.orchestrator.select_file(parcel_request)
        harness.orchestrator.start_upload()

        with harness.orchestrator as orchestrator:
            poller = orchestrator.track(background=False)

        assert poller.stopped


class TestParcelScenario:
    def test_parcel_upload_end_to_end(self, parcel_request: UploadRequest) -> None:
        credential_calls: list[dict[str, object]] = []

        def _credential_endpoint(request: httpx.Request) -> httpx.Response:
            credential_calls.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={
                    "presignedUrl": "https://store/bucket/input_kml_files/parcel.kml?sig=abc",
                    "fileKey": "input_kml_files/parcel.kml",
                    "expiresIn": 3600,
                },
            )

        requester = HttpCredentialRequester(
            endpoint_url="http://proxy.local/api/presigned-url",
            client=httpx.Client(transport=httpx.MockTransport(_credential_endpoint)),
        )
        transfer_agent = HttpxTransferAgent(
            client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        )
        pipeline = UploadPipeline(
            steps=[
                RequestCredentialsStep(requester),
                TransferStep(transfer_agent),
                NotifyStep(SimulatedNotifier(delay_seconds=0)),
            ]
        )
        orchestrator = UploadOrchestrator(
            pipeline, max_size_bytes=_MAX, allowed_extensions=[".kml", ".kmz"]
        )

        assert orchestrator.select_file(parcel_request) == Idle()
        state = orchestrator.start_upload()

        assert isinstance(state, Success)
        assert state.file_key == "parcel.kml"
        assert _TRACKING_ID.match(state.tracking_id)
        assert credential_calls == [{"fileName": "input_kml_files/parcel.kml"}]

    def test_png_never_requests_credentials(self) -> None:
        endpoint = MagicMock(return_value=httpx.Response(200, json={}))
        requester = HttpCredentialRequester(
            endpoint_url="http://proxy.local/api/presigned-url",
            client=httpx.Client(transport=httpx.MockTransport(endpoint)),
        )
        orchestrator = UploadOrchestrator(
            UploadPipeline(steps=[RequestCredentialsStep(requester)]),
            max_size_bytes=_MAX,
            allowed_extensions=[".kml", ".kmz"],
        )

        state = orchestrator.select_file(UploadRequest.from_bytes("map.png", b"\x89PNG"))

        assert isinstance(state, Error)
        with pytest.raises(NoFileSelectedError):
            orchestrator.start_upload()
        endpoint.assert_not_called()


class TestBuildOrchestrator:
    def test_builds_from_settings(self) -> None:
        orchestrator = build_orchestrator(Settings())
        assert isinstance(orchestrator, UploadOrchestrator)
        assert orchestrator.state == Idle()
