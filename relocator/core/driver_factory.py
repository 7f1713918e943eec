"""
Driver Factory - WebDriver creation for tracking sessions.

Trackers only read the page and draw overlays on it, so a plain Chrome
session is enough; a persistent profile keeps logins between runs.
"""

from typing import Optional, Tuple
from contextlib import contextmanager
import logging

from selenium import webdriver
from selenium.webdriver.chrome.options import Options as ChromeOptions

logger = logging.getLogger(__name__)

WebDriverType = webdriver.Chrome

DEFAULT_WINDOW_SIZE = (1920, 1080)


def build_options(
    headless: bool = False,
    profile_path: Optional[str] = None,
    window_size: Tuple[int, int] = DEFAULT_WINDOW_SIZE,
) -> ChromeOptions:
    """Chrome options for a tracking session."""
    options = ChromeOptions()

    if headless:
        options.add_argument("--headless=new")

    if profile_path:
        options.add_argument(f"--user-data-dir={profile_path}")

    width, height = window_size
    options.add_argument(f"--window-size={width},{height}")

    # Common stability options
    options.add_argument("--disable-extensions")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_experimental_option("excludeSwitches", ["enable-automation"])
    options.add_experimental_option("useAutomationExtension", False)
    return options


def create_driver(
    headless: bool = False,
    profile_path: Optional[str] = None,
    window_size: Tuple[int, int] = DEFAULT_WINDOW_SIZE,
) -> WebDriverType:
    """
    Create a Chrome WebDriver.

    Args:
        headless: Run browser in headless mode
        profile_path: Path to browser profile for session persistence
        window_size: Initial window width and height

    Example:
        >>> driver = create_driver(headless=True)
        >>> driver.get("https://example.com/form")
    """
    options = build_options(headless, profile_path, window_size)
    logger.debug("Starting Chrome (headless=%s, profile=%s)", headless, profile_path)
    return webdriver.Chrome(options=options)


@contextmanager
def driver_session(
    headless: bool = False,
    profile_path: Optional[str] = None,
    window_size: Tuple[int, int] = DEFAULT_WINDOW_SIZE,
):
    """
    Create a driver and quit it on exit.

    Example:
        >>> with driver_session(headless=True) as driver:
        ...     driver.get("https://example.com/form")
    """
    driver = create_driver(headless, profile_path, window_size)
    try:
        yield driver
    finally:
        driver.quit()
