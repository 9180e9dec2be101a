import pytest

from web3funnel.tracker.probe import (
    BrowserEnvironment,
    BrowserPattern,
    ElementSnapshot,
    NavigationTiming,
    PaintEntry,
    SystemPattern,
    device_info,
    element_info,
    page_info,
    performance_metrics,
)

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_MAC = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Safari/605.1.15"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


@pytest.mark.unit
class TestPageInfo:
    def test_page_info_from_environment(self):
        env = BrowserEnvironment(url="https://dapp.example/swap?token=eth", title="Swap")

        page = page_info(env)

        assert page.url == "https://dapp.example/swap?token=eth"
        assert page.title == "Swap"
        assert page.path == "/swap"

    def test_missing_environment_gives_empty_strings(self):
        page = page_info(None)

        assert (page.url, page.title, page.path) == ("", "", "")


@pytest.mark.unit
class TestDeviceInfo:
    @pytest.mark.parametrize(
        "user_agent, browser, version, os_name",
        [
            (CHROME_WINDOWS, "Chrome", "120", "Windows"),
            (SAFARI_MAC, "Safari", "17", "macOS"),
            (FIREFOX_LINUX, "Firefox", "121", "Linux"),
        ],
    )
    def test_known_user_agents(self, user_agent, browser, version, os_name):
        info = device_info(user_agent)

        assert info.browser == browser
        assert info.browser_version == version
        assert info.os == os_name
        assert info.device_type == "desktop"

    def test_unknown_user_agent(self):
        info = device_info("curl/8.4.0")

        assert info.browser == "Unknown"
        assert info.browser_version == "Unknown"
        assert info.os == "Unknown"
        assert info.device_type == "desktop"

    def test_empty_user_agent(self):
        assert device_info(None).browser == "Unknown"
        assert device_info("").os == "Unknown"

    def test_custom_tables(self):
        import re

        browsers = [BrowserPattern("Brave", "Brave", re.compile(r"Brave/(\d+)"))]
        systems = [SystemPattern("Android", "Android", "mobile")]

        info = device_info("Mozilla/5.0 (Android 14) Brave/1", browsers, systems)

        assert info.browser == "Brave"
        assert info.browser_version == "1"
        assert info.os == "Android"
        assert info.device_type == "mobile"


@pytest.mark.unit
class TestPerformanceMetrics:
    def test_metrics_relative_to_navigation_start(self):
        timing = NavigationTiming(
            navigation_start=1000.0,
            dom_content_loaded_event_end=1800.0,
            load_event_end=2500.0,
        )
        paints = [
            PaintEntry("first-paint", 300.0),
            PaintEntry("first-contentful-paint", 450.5),
        ]

        metrics = performance_metrics(timing, paints)

        assert metrics.load_time == 1500.0
        assert metrics.dom_content_loaded == 800.0
        assert metrics.first_contentful_paint == 450.5

    def test_first_contentful_paint_defaults_to_zero(self):
        metrics = performance_metrics(NavigationTiming(navigation_start=0.0))

        assert metrics.first_contentful_paint == 0

    def test_no_timing_gives_empty_record(self):
        assert performance_metrics(None).to_payload() == {}


@pytest.mark.unit
class TestElementInfo:
    def test_element_snapshot(self):
        element = ElementSnapshot(
            id="connect", class_name="btn primary", tag_name="BUTTON",
            text_content="Connect wallet",
        )

        info = element_info(element)

        assert info.id == "connect"
        assert info.class_name == "btn primary"
        assert info.tag_name == "BUTTON"
        assert info.text == "Connect wallet"

    def test_text_is_truncated_to_100_characters(self):
        info = element_info(ElementSnapshot(text_content="x" * 250))

        assert info.text == "x" * 100

    def test_missing_attributes_become_empty(self):
        info = element_info(object())

        assert (info.id, info.class_name, info.tag_name, info.text) == ("", "", "", "")

    def test_no_element(self):
        assert element_info(None).to_payload() == {}
