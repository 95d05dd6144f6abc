import base64
import json
from collections import deque

import pytest

from chartrender.cdp import CdpBrowser, CdpError

WS_URL = "ws://127.0.0.1:9222/devtools/browser/fake"


class Failure:
    def __init__(self, message):
        self.message = message


class FakeSocket:
    def __init__(self, handlers=None):
        self.handlers = handlers or {}
        self.sent = []
        self.inbox = deque()
        self.closed = False

    def send(self, text):
        message = json.loads(text)
        self.sent.append(message)
        # an unrelated event arrives before every reply
        self.inbox.append(json.dumps({"method": "Target.targetInfoChanged", "params": {}}))
        handler = self.handlers.get(message["method"])
        outcome = handler(message.get("params", {})) if handler else {}
        reply = {"id": message["id"]}
        if isinstance(outcome, Failure):
            reply["error"] = {"code": -32000, "message": outcome.message}
        else:
            reply["result"] = outcome
        self.inbox.append(json.dumps(reply))

    def recv(self):
        if not self.inbox:
            raise OSError("socket closed")
        return self.inbox.popleft()

    def close(self):
        self.closed = True


TAB_HANDLERS = {
    "Target.createTarget": lambda params: {"targetId": "T1"},
    "Target.attachToTarget": lambda params: {"sessionId": "S1"},
}


def connect(handlers=None):
    sock = FakeSocket({**TAB_HANDLERS, **(handlers or {})})
    seen = []

    def connector(url, timeout):
        seen.append(url)
        return sock

    browser = CdpBrowser(WS_URL, timeout=5.0, connector=connector)
    return browser, sock, seen


def test_connects_to_given_ws_url():
    _, _, seen = connect()
    assert seen == [WS_URL]


def test_connector_failure_raises_cdp_error():
    def connector(url, timeout):
        raise OSError("refused")

    with pytest.raises(CdpError, match="refused"):
        CdpBrowser(WS_URL, connector=connector)


def test_get_version_returns_result_and_skips_events():
    browser, sock, _ = connect({"Browser.getVersion": lambda p: {"product": "Fake/1"}})
    assert browser.get_version() == {"product": "Fake/1"}
    assert sock.sent[-1]["method"] == "Browser.getVersion"
    assert "sessionId" not in sock.sent[-1]


def test_message_ids_increase():
    browser, sock, _ = connect()
    browser.get_version()
    browser.get_version()
    assert sock.sent[1]["id"] > sock.sent[0]["id"]


def test_error_reply_raises():
    browser, _, _ = connect({"Browser.getVersion": lambda p: Failure("No browser")})
    with pytest.raises(CdpError, match="No browser"):
        browser.get_version()


def test_broken_connection_raises():
    browser, sock, _ = connect()
    sock.send = lambda text: (_ for _ in ()).throw(OSError("broken pipe"))
    with pytest.raises(CdpError, match="broken pipe"):
        browser.get_version()


def test_close_closes_socket_and_blocks_calls():
    browser, sock, _ = connect()
    browser.close()
    assert sock.closed is True
    with pytest.raises(CdpError, match="closed"):
        browser.get_version()


def test_new_tab_attaches_flat_session():
    browser, sock, _ = connect()
    tab = browser.new_tab()
    assert (tab.target_id, tab.session_id) == ("T1", "S1")
    attach = sock.sent[-1]
    assert attach["method"] == "Target.attachToTarget"
    assert attach["params"] == {"targetId": "T1", "flatten": True}


def test_new_tab_without_target_id_raises():
    browser, _, _ = connect({"Target.createTarget": lambda p: {}})
    with pytest.raises(CdpError, match="target id"):
        browser.new_tab()


def test_tab_calls_carry_session_id():
    browser, sock, _ = connect({"Runtime.evaluate": lambda p: {"result": {"type": "number", "value": 3}}})
    tab = browser.new_tab()
    assert tab.evaluate("1 + 2") == 3
    sent = sock.sent[-1]
    assert sent["sessionId"] == "S1"
    assert sent["params"] == {"expression": "1 + 2", "returnByValue": True}


def test_evaluate_exception_raises():
    details = {"text": "Uncaught", "exception": {"description": "ReferenceError: x is not defined"}}
    browser, _, _ = connect({"Runtime.evaluate": lambda p: {"result": {}, "exceptionDetails": details}})
    tab = browser.new_tab()
    with pytest.raises(CdpError, match="ReferenceError"):
        tab.evaluate("x")


def test_set_viewport_sends_metrics():
    browser, sock, _ = connect()
    tab = browser.new_tab()
    tab.set_viewport(800, 600, 1.0)
    params = sock.sent[-1]["params"]
    assert sock.sent[-1]["method"] == "Emulation.setDeviceMetricsOverride"
    assert (params["width"], params["height"], params["deviceScaleFactor"]) == (800, 600, 1.0)
    assert "scale" not in params


def test_set_viewport_with_scale():
    browser, sock, _ = connect()
    tab = browser.new_tab()
    tab.set_viewport(400, 300, 2.0)
    assert sock.sent[-1]["params"]["scale"] == 2.0


def test_navigate_error_text_raises():
    browser, _, _ = connect({"Page.navigate": lambda p: {"frameId": "F", "errorText": "net::ERR_ABORTED"}})
    tab = browser.new_tab()
    with pytest.raises(CdpError, match="net::ERR_ABORTED"):
        tab.navigate_to("data:text/html,hi")


def test_navigate_sends_url():
    browser, sock, _ = connect({"Page.navigate": lambda p: {"frameId": "F"}})
    tab = browser.new_tab()
    tab.navigate_to("data:text/html,hi")
    assert sock.sent[-1]["params"] == {"url": "data:text/html,hi"}


def test_wait_for_element_polls_until_found():
    answers = iter([False, False, True])
    browser, sock, _ = connect({"Runtime.evaluate": lambda p: {"result": {"value": next(answers)}}})
    tab = browser.new_tab()
    tab.wait_for_element("#render-container", 5.0)
    expressions = [m["params"]["expression"] for m in sock.sent if m["method"] == "Runtime.evaluate"]
    assert len(expressions) == 3
    assert 'document.querySelector("#render-container")' in expressions[0]


def test_wait_for_element_times_out():
    browser, _, _ = connect({"Runtime.evaluate": lambda p: {"result": {"value": False}}})
    tab = browser.new_tab()
    with pytest.raises(CdpError, match="Timed out"):
        tab.wait_for_element("#missing", 0.05)


def test_capture_screenshot_decodes_data():
    image = b"\x89PNG\r\n\x1a\nfake"
    encoded = base64.b64encode(image).decode()
    browser, sock, _ = connect({"Page.captureScreenshot": lambda p: {"data": encoded}})
    tab = browser.new_tab()
    assert tab.capture_screenshot("jpeg", 70) == image
    assert sock.sent[-1]["params"] == {"format": "jpeg", "fromSurface": True, "quality": 70}


def test_capture_screenshot_malformed_data_raises():
    browser, _, _ = connect({"Page.captureScreenshot": lambda p: {"data": "!!not base64!!"}})
    tab = browser.new_tab()
    with pytest.raises(CdpError, match="malformed"):
        tab.capture_screenshot("png")


def test_print_to_pdf_decodes_data():
    document = b"%PDF-1.4 fake"
    encoded = base64.b64encode(document).decode()
    browser, _, _ = connect({"Page.printToPDF": lambda p: {"data": encoded}})
    tab = browser.new_tab()
    assert tab.print_to_pdf() == document


def test_tab_close_targets_page_at_browser_level():
    browser, sock, _ = connect()
    tab = browser.new_tab()
    tab.close()
    last = sock.sent[-1]
    assert last["method"] == "Target.closeTarget"
    assert last["params"] == {"targetId": "T1"}
    assert "sessionId" not in last