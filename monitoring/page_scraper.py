"""
Page Scraper

Chrome rendering environment for the monitor. Launches one Chrome session
per run, opens one tab per target, and extracts the text content of a CSS
selector once the page's DOM is ready.

Uses Selenium with webdriver-manager to obtain a matching chromedriver.
"""

import logging
import threading
from dataclasses import dataclass

from bs4 import BeautifulSoup
from selenium import webdriver
from selenium.common.exceptions import (
    InvalidSelectorException,
    InvalidSessionIdException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from urllib3.exceptions import HTTPError as DriverConnectionError
from webdriver_manager.chrome import ChromeDriverManager

from config.settings import Timeouts
from monitoring.errors import (
    EnvironmentConnectionError,
    EnvironmentLaunchError,
    ExtractionError,
    NavigationError,
)

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)

# Page titles that usually mean an anti-bot interstitial instead of content
BLOCKING_INDICATORS = ["blocked", "access denied", "captcha", "just a moment"]

# Raised by the Selenium client instead of WebDriverException once chromedriver is gone
DRIVER_CONNECTION_ERRORS = (DriverConnectionError, ConnectionError)


@dataclass
class BrowserEnvironment:
    """A running Chrome session plus the tab that stays open between targets."""

    driver: object
    home_handle: str


@dataclass
class PageHandle:
    """One tab, owned by the target currently being processed."""

    environment: BrowserEnvironment
    window_handle: str

    @property
    def driver(self):
        return self.environment.driver


def get_driver(headless=True, chrome_binary=None):
    """
    Launch Chrome and return a configured driver.

    Args:
        headless (bool): Run Chrome without a window
        chrome_binary (str, optional): Path to a specific Chrome executable

    Returns:
        selenium.webdriver.Chrome: Connected driver

    Raises:
        EnvironmentLaunchError: chromedriver or Chrome could not be started
        EnvironmentConnectionError: Chrome started but did not accept commands
    """
    chrome_options = Options()

    # Critical flags for container environments
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--window-size=1280,720")
    chrome_options.add_argument("--no-first-run")
    chrome_options.add_argument("--disable-default-apps")
    chrome_options.add_argument("--disable-extensions")
    chrome_options.add_argument("--disable-features=TranslateUI")
    if headless:
        chrome_options.add_argument("--headless=new")

    chrome_options.add_argument(f"--user-agent={USER_AGENT}")
    chrome_options.add_argument("--disable-blink-features=AutomationControlled")
    chrome_options.add_experimental_option("excludeSwitches", ["enable-automation"])

    # Return from get() once the DOM is parsed; the selector wait covers the rest
    chrome_options.page_load_strategy = "eager"

    if chrome_binary:
        chrome_options.binary_location = chrome_binary

    try:
        driver_path = ChromeDriverManager().install()
    except Exception as e:
        raise EnvironmentLaunchError(
            f"Failed to launch Chrome: could not install chromedriver: {e}"
        ) from e

    try:
        driver = webdriver.Chrome(service=Service(driver_path), options=chrome_options)
    except WebDriverException as e:
        raise EnvironmentLaunchError(f"Failed to launch Chrome: {e.msg or e}") from e
    except OSError as e:
        raise EnvironmentLaunchError(f"Failed to launch Chrome: {e}") from e

    try:
        # Hide the webdriver flag on every document the session opens
        driver.execute_cdp_cmd(
            "Page.addScriptToEvaluateOnNewDocument",
            {"source": "Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"},
        )
    except WebDriverException as e:
        try:
            driver.quit()
        except WebDriverException as quit_error:
            logger.debug(f"Error quitting half-started driver: {quit_error}")
        raise EnvironmentConnectionError(f"Failed to connect to Chrome: {e.msg or e}") from e

    return driver


def extract_text_content(html):
    """
    Text content of an element's outer HTML, hidden descendants included.

    Returns:
        str or None: The element's text, or None when there is no element
    """
    if html is None:
        return None
    soup = BeautifulSoup(html, "html.parser")
    return soup.get_text()


class ChromeRenderer:
    """
    Rendering environment provider backed by one Selenium Chrome session.
    """

    def __init__(self, headless=True, chrome_binary=None, shutdown_grace_seconds=5.0, logger=None):
        self.headless = headless
        self.chrome_binary = chrome_binary
        self.shutdown_grace_seconds = shutdown_grace_seconds
        self.logger = logger or logging.getLogger(__name__)

    def acquire_environment(self):
        self.logger.info("Launching Chrome browser...")
        driver = get_driver(headless=self.headless, chrome_binary=self.chrome_binary)
        try:
            home_handle = driver.current_window_handle
        except WebDriverException as e:
            self._kill_driver(driver)
            raise EnvironmentConnectionError(f"Failed to connect to Chrome: {e.msg or e}") from e
        except DRIVER_CONNECTION_ERRORS as e:
            self._kill_driver(driver)
            raise EnvironmentConnectionError(f"Failed to connect to Chrome: {e}") from e
        self.logger.info("Browser connection established")
        return BrowserEnvironment(driver=driver, home_handle=home_handle)

    def open_page(self, env):
        """Open a fresh tab; the caller must close it with close_page."""
        try:
            env.driver.switch_to.new_window("tab")
            handle = env.driver.current_window_handle
        except WebDriverException as e:
            raise EnvironmentConnectionError(f"Failed to create page: {e.msg or e}") from e
        except DRIVER_CONNECTION_ERRORS as e:
            raise EnvironmentConnectionError(f"Lost connection to Chrome: {e}") from e
        self.logger.debug(f"Opened tab {handle}")
        return PageHandle(environment=env, window_handle=handle)

    def close_page(self, page):
        """Close a tab. Errors are logged and never raised."""
        if page is None:
            return
        driver = page.driver
        try:
            driver.switch_to.window(page.window_handle)
            driver.close()
        except (WebDriverException, *DRIVER_CONNECTION_ERRORS) as e:
            self.logger.warning(f"Failed to close page: {e}")
        try:
            driver.switch_to.window(page.environment.home_handle)
        except (WebDriverException, *DRIVER_CONNECTION_ERRORS) as e:
            self.logger.warning(f"Failed to return to home tab: {e}")

    def fetch_fragment(self, page, url, selector, timeouts=None):
        """
        Navigate to url and return the trimmed text content of selector.

        Args:
            page (PageHandle): Tab to use
            url (str): Page to load
            selector (str): CSS selector of the monitored element
            timeouts (Timeouts, optional): Navigation and selector timeouts

        Returns:
            str: Text content of the first matching element, trimmed

        Raises:
            NavigationError: Page did not load (timeout, network or other)
            ExtractionError: Element missing, slow, invalid or without text
            EnvironmentConnectionError: The browser session is gone
        """
        timeouts = timeouts or Timeouts()
        driver = page.driver

        self.logger.debug(f"Navigating to {url} with selector {selector}")
        try:
            driver.switch_to.window(page.window_handle)
            driver.set_page_load_timeout(timeouts.navigation)
            driver.get(url)
        except TimeoutException as e:
            raise NavigationError(
                f'Navigation timeout: Failed to load "{url}" within {timeouts.navigation}s',
                reason="navigation_timeout",
            ) from e
        except InvalidSessionIdException as e:
            raise EnvironmentConnectionError(f"Browser session lost: {e.msg or e}") from e
        except DRIVER_CONNECTION_ERRORS as e:
            raise EnvironmentConnectionError(f"Lost connection to Chrome: {e}") from e
        except WebDriverException as e:
            message = e.msg or str(e)
            if "net::ERR_" in message:
                raise NavigationError(
                    f'Network error loading "{url}": {message}', reason="network"
                ) from e
            raise NavigationError(
                f'Page monitoring error for "{url}": {message}', reason="generic"
            ) from e

        self._warn_if_blocked(driver, url)

        try:
            element = WebDriverWait(driver, timeouts.selector).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, selector))
            )
        except TimeoutException as e:
            raise ExtractionError(
                f'Element timeout: Selector "{selector}" not found on "{url}" '
                f"within {timeouts.selector}s",
                reason="selector_timeout",
            ) from e
        except InvalidSelectorException as e:
            raise ExtractionError(
                f'Invalid CSS selector "{selector}": {e.msg or e}', reason="invalid_selector"
            ) from e
        except InvalidSessionIdException as e:
            raise EnvironmentConnectionError(f"Browser session lost: {e.msg or e}") from e
        except DRIVER_CONNECTION_ERRORS as e:
            raise EnvironmentConnectionError(f"Lost connection to Chrome: {e}") from e
        except WebDriverException as e:
            raise ExtractionError(
                f'Failed to wait for selector "{selector}": {e.msg or e}', reason="not_found"
            ) from e

        try:
            html = element.get_attribute("outerHTML")
        except StaleElementReferenceException as e:
            raise ExtractionError(
                f'Element for selector "{selector}" was detached before extraction',
                reason="not_found",
            ) from e
        except DRIVER_CONNECTION_ERRORS as e:
            raise EnvironmentConnectionError(f"Lost connection to Chrome: {e}") from e
        except WebDriverException as e:
            raise ExtractionError(
                f'Failed to extract text content from selector "{selector}": {e.msg or e}'
            ) from e

        text = extract_text_content(html)
        if text is None:
            raise ExtractionError(
                f'No text content found for selector "{selector}" on "{url}"', reason="no_text"
            )

        self.logger.debug(f"Content extracted from {url} ({len(text)} chars)")
        return text.strip()

    def release_environment(self, env):
        """
        Stop Chrome: quit gracefully, force-kill after the grace window.

        Never raises; problems are logged.
        """
        if env is None:
            return

        errors = []

        def quit_driver():
            try:
                env.driver.quit()
            except Exception as e:
                errors.append(e)

        quitter = threading.Thread(target=quit_driver, name="chrome-quit", daemon=True)
        quitter.start()
        quitter.join(self.shutdown_grace_seconds)

        if quitter.is_alive():
            self.logger.warning(
                f"Chrome did not shut down within {self.shutdown_grace_seconds}s, force-terminating"
            )
            self._kill_driver(env.driver)
        elif errors:
            self.logger.warning(f"Error during Chrome shutdown: {errors[0]}")
            self._kill_driver(env.driver)
        else:
            self.logger.info("Chrome process terminated")

    def _kill_driver(self, driver):
        service = getattr(driver, "service", None)
        process = getattr(service, "process", None)
        if process is None:
            return
        try:
            process.kill()
            process.wait(timeout=self.shutdown_grace_seconds)
        except Exception as e:
            self.logger.warning(f"Could not kill chromedriver process: {e}")

    def _warn_if_blocked(self, driver, url):
        try:
            title = (driver.title or "").lower()
        except WebDriverException as e:
            self.logger.debug(f"Could not read page title for {url}: {e}")
            return
        except DRIVER_CONNECTION_ERRORS as e:
            raise EnvironmentConnectionError(f"Lost connection to Chrome: {e}") from e
        if any(indicator in title for indicator in BLOCKING_INDICATORS):
            self.logger.warning(f"Page title suggests anti-bot blocking on {url}: {title}")
