import pytest

from RestConnect.base import RequestExecutor
from RestConnect.config import ClientConfig
from RestConnect.exceptions import ConfigurationError, DeserializationFault, TransportFault
from RestConnect.middlewares import BaseMiddleware
from RestConnect.models import RawResponse, RequestDescriptor, ResponseStatus, TransportOutcome
from RestConnect.transport import CancellationSignal

from fakes import RaisingTransport, Response, SlowTransport, StaticTransport, json_response

CONFIG = ClientConfig(base_url="http://api.test", default_headers={"Accept": "application/json"})


def boom(raw):
    raise Exception("boom")


@pytest.mark.asyncio
async def test_completed_execution_populates_envelope():
    transport = StaticTransport(json_response({"Message": "Works!"}))
    envelope = await RequestExecutor(CONFIG, transport).execute(RequestDescriptor("success"), Response)

    assert envelope.status is ResponseStatus.COMPLETED
    assert envelope.status_code == 200
    assert envelope.data.Message == "Works!"
    assert envelope.error_message is None
    assert envelope.fault is None
    assert envelope.request.url == "http://api.test/success"


@pytest.mark.asyncio
async def test_request_resolution_merges_defaults_and_overrides():
    transport = StaticTransport(json_response({}))
    descriptor = RequestDescriptor("items", "post", body=b"x", headers={"accept": "text/plain"},
                                   query={"q": "1"}, timeout=3)
    await RequestExecutor(CONFIG, transport).execute_raw(descriptor)

    sent = transport.requests[0]
    assert sent.method == "POST"
    assert sent.url == "http://api.test/items?q=1"
    assert sent.headers == {"accept": "text/plain"}
    assert sent.body == b"x"
    assert sent.timeout == 3.0


@pytest.mark.parametrize("raw", [
    json_response({"Message": "Works!"}),
    json_response({"error": "bad"}, 500),
    RawResponse(status_code=404),
])
@pytest.mark.asyncio
async def test_failing_hook_reports_error_with_verbatim_message(raw):
    descriptor = RequestDescriptor("anything").with_hook(boom)
    envelope = await RequestExecutor(CONFIG, StaticTransport(raw)).execute(descriptor, Response)

    assert envelope.status is ResponseStatus.ERROR
    assert envelope.error_message == "boom"
    assert envelope.data is None
    assert isinstance(envelope.fault, DeserializationFault)
    assert envelope.status_code == raw.status_code


@pytest.mark.asyncio
async def test_execute_raw_runs_hooks_but_skips_decoding():
    seen = []
    transport = StaticTransport(RawResponse(status_code=200, headers={"Content-Type": "application/json"},
                                            body=b"{not json"))
    descriptor = RequestDescriptor("raw").with_hook(lambda raw: seen.append(raw.status_code))

    envelope = await RequestExecutor(CONFIG, transport).execute_raw(descriptor)

    assert seen == [200]
    assert envelope.status is ResponseStatus.COMPLETED
    assert envelope.content == b"{not json"
    assert envelope.data is None


@pytest.mark.asyncio
async def test_execute_raw_reports_hook_fault():
    envelope = await RequestExecutor(CONFIG, StaticTransport(json_response({}))).execute_raw(
        RequestDescriptor("raw").with_hook(boom))
    assert envelope.status is ResponseStatus.ERROR
    assert envelope.error_message == "boom"


@pytest.mark.asyncio
async def test_not_found_is_completed_without_data():
    envelope = await RequestExecutor(CONFIG, StaticTransport(RawResponse(status_code=404))).execute(
        RequestDescriptor("status"), Response)
    assert envelope.status is ResponseStatus.COMPLETED
    assert envelope.status_code == 404
    assert envelope.data is None
    assert not envelope.is_successful


@pytest.mark.asyncio
async def test_transport_error_is_captured():
    transport = StaticTransport(RawResponse.transport_error("Connection refused: [Errno 111]"))
    envelope = await RequestExecutor(CONFIG, transport).execute(RequestDescriptor("x"), Response)

    assert envelope.status is ResponseStatus.ERROR
    assert envelope.error_message == "Connection refused: [Errno 111]"
    assert envelope.status_code is None
    assert isinstance(envelope.fault, TransportFault)


@pytest.mark.asyncio
async def test_hook_fault_overrides_transport_error():
    seen = []

    def inspect(raw):
        seen.append(raw.outcome)
        raise Exception("boom")

    transport = StaticTransport(RawResponse.transport_error("Connection refused: [Errno 111]"))
    envelope = await RequestExecutor(CONFIG, transport).execute(RequestDescriptor("x").with_hook(inspect), Response)

    assert seen == [TransportOutcome.TRANSPORT_ERROR]
    assert envelope.status is ResponseStatus.ERROR
    assert envelope.error_message == "boom"
    assert envelope.status_code is None
    assert envelope.data is None
    assert isinstance(envelope.fault, DeserializationFault)
    assert envelope.fault.status_code is None


@pytest.mark.asyncio
async def test_passing_hooks_keep_transport_error_message():
    transport = StaticTransport(RawResponse.transport_error("Connection refused: [Errno 111]"))
    envelope = await RequestExecutor(CONFIG, transport).execute(
        RequestDescriptor("x").with_hook(lambda raw: None), Response)

    assert envelope.error_message == "Connection refused: [Errno 111]"
    assert isinstance(envelope.fault, TransportFault)


@pytest.mark.asyncio
async def test_unknown_charset_for_text_target_is_a_deserialization_fault():
    raw = RawResponse(status_code=200, headers={"Content-Type": "text/plain; charset=bogus"}, body=b"hi")
    envelope = await RequestExecutor(CONFIG, StaticTransport(raw)).execute(RequestDescriptor("x"), str)

    assert envelope.status is ResponseStatus.ERROR
    assert envelope.status_code == 200
    assert isinstance(envelope.fault, DeserializationFault)


@pytest.mark.asyncio
async def test_timeout_never_reaches_hooks():
    hook_calls = []
    descriptor = RequestDescriptor("slow", timeout=0.05).with_hook(lambda raw: hook_calls.append(raw))
    executor = RequestExecutor(CONFIG, SlowTransport(delay=2.0))

    envelope = await executor.execute(descriptor, Response)

    assert envelope.status is ResponseStatus.TIMED_OUT
    assert envelope.error_message == "The request timed out after 0.05 seconds"
    assert envelope.status_code is None
    assert hook_calls == []


@pytest.mark.asyncio
async def test_default_timeout_applies_and_zero_disables_it():
    config = ClientConfig(base_url="http://api.test", default_timeout=0.05)
    executor = RequestExecutor(config, SlowTransport(delay=0.2))

    timed_out = await executor.execute_raw(RequestDescriptor("slow"))
    unlimited = await executor.execute_raw(RequestDescriptor("slow", timeout=0))

    assert timed_out.status is ResponseStatus.TIMED_OUT
    assert unlimited.status is ResponseStatus.COMPLETED


@pytest.mark.asyncio
async def test_abort_signal_reports_aborted():
    abort = CancellationSignal()
    abort.cancel()
    envelope = await RequestExecutor(CONFIG, SlowTransport(delay=1.0)).execute(RequestDescriptor("x"), abort_signal=abort)

    assert envelope.status is ResponseStatus.ABORTED
    assert envelope.error_message == "The request was aborted"


@pytest.mark.asyncio
async def test_relative_resource_without_base_url_is_an_error_envelope():
    envelope = await RequestExecutor(ClientConfig(), StaticTransport(json_response({}))).execute(
        RequestDescriptor("relative"))

    assert envelope.status is ResponseStatus.ERROR
    assert isinstance(envelope.fault, ConfigurationError)


@pytest.mark.asyncio
async def test_middleware_failure_is_captured():
    class Broken(BaseMiddleware):
        async def process_request(self, request):
            raise RuntimeError("middleware broke")

    envelope = await RequestExecutor(CONFIG, StaticTransport(json_response({})), [Broken()]).execute(
        RequestDescriptor("x"))

    assert envelope.status is ResponseStatus.ERROR
    assert envelope.error_message == "middleware broke"


@pytest.mark.asyncio
async def test_raising_transport_does_not_escape():
    envelope = await RequestExecutor(CONFIG, RaisingTransport()).execute(RequestDescriptor("x"))
    assert envelope.status is ResponseStatus.ERROR
    assert envelope.error_message == "socket exploded"


@pytest.mark.asyncio
async def test_closed_executor_returns_error_envelope():
    executor = RequestExecutor(CONFIG, StaticTransport(json_response({})))
    executor.close()
    envelope = await executor.execute(RequestDescriptor("x"))
    assert envelope.status is ResponseStatus.ERROR
    assert envelope.error_message == "Client is closed"
