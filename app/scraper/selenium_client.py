"""Selenium backend for the page-driver surface."""
from __future__ import annotations

from typing import Any

from selenium import webdriver
from selenium.common.exceptions import (
    InvalidSessionIdException,
    NoSuchElementException,
    NoSuchWindowException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import Select, WebDriverWait

from . import config
from .errors import DriverUnavailable, NavigationTimeout, StructuralChange
from .utils import ensure_dirs, log_line


def make_driver() -> WebDriver:
    """Instantiate a headless Chrome WebDriver instance."""
    ensure_dirs()
    chrome_options = Options()
    chrome_options.binary_location = config.CHROMIUM_BINARY
    if config.HEADLESS:
        chrome_options.add_argument("--headless=new")
    chrome_options.add_argument("--disable-gpu")
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--window-size=1920,1080")
    chrome_options.add_argument(f"--user-agent={config.USER_AGENT}")
    try:
        driver = webdriver.Chrome(options=chrome_options)
    except WebDriverException as exc:
        raise DriverUnavailable(f"Chrome WebDriver launch failed: {exc.msg}") from exc
    driver.set_page_load_timeout(config.NAV_TIMEOUT_SECONDS)
    return driver


class SeleniumDriver:
    """Adapts a Selenium ``WebDriver`` to the page-driver operations."""

    def __init__(self, driver: WebDriver) -> None:
        self.driver = driver

    def navigate(self, url: str) -> None:
        try:
            self.driver.get(url)
        except TimeoutException as exc:
            raise NavigationTimeout(f"get {url}: page load timed out") from exc
        except (InvalidSessionIdException, NoSuchWindowException) as exc:
            raise DriverUnavailable(f"get {url}: {exc.msg}") from exc

    def wait_for(self, selector: str, timeout: float) -> bool:
        try:
            WebDriverWait(self.driver, timeout).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, selector))
            )
            return True
        except TimeoutException:
            return False
        except (InvalidSessionIdException, NoSuchWindowException) as exc:
            raise DriverUnavailable(f"wait_for {selector}: {exc.msg}") from exc

    def select_option(self, control: str, value: str) -> None:
        try:
            element = self.driver.find_element(By.CSS_SELECTOR, control)
            Select(element).select_by_value(value)
        except NoSuchElementException as exc:
            raise StructuralChange(f"select {control}={value}: {exc.msg}") from exc

    def evaluate(self, script: str, arg: Any = None) -> Any:
        # Page functions are written as ``(arg) => ...``; wrap them so Selenium
        # returns their result.
        try:
            return self.driver.execute_script(
                f"return ({script}).apply(null, arguments);", arg
            )
        except (InvalidSessionIdException, NoSuchWindowException) as exc:
            raise DriverUnavailable(f"evaluate: {exc.msg}") from exc

    def click(self, selector: str, index: int = 0) -> None:
        elements = self.driver.find_elements(By.CSS_SELECTOR, selector)
        if index >= len(elements):
            raise StructuralChange(
                f"click {selector}[{index}]: only {len(elements)} element(s) present"
            )
        try:
            elements[index].click()
        except WebDriverException as exc:
            # Overlays and off-screen controls reject native clicks.
            log_line(f"[DRIVER] Native click failed on {selector}[{index}]; using script click")
            try:
                self.driver.execute_script("arguments[0].click();", elements[index])
            except WebDriverException:
                raise StructuralChange(f"click {selector}[{index}]: {exc.msg}") from exc

    def close(self) -> None:
        try:
            self.driver.quit()
        except WebDriverException as exc:
            log_line(f"[DRIVER] Ignoring WebDriver quit error: {exc.msg}")


def open_selenium_driver() -> SeleniumDriver:
    return SeleniumDriver(make_driver())


__all__ = ["make_driver", "SeleniumDriver", "open_selenium_driver"]
