"""
Read the UT1 Capitole ADE planning through Selenium browser automation.

Workflow of one page session:
1. Start Chrome (headless, images and stylesheets disabled)
2. Open the CAS login page, type username + password
3. CAS redirects to "myplanning.jsp"; wait for the planning grid
4. Optionally click the week button labelled "(NN)"
5. Read every event block: position style, height style, text HTML

Each session owns its own browser, so sessions can run in parallel threads.
"""
from __future__ import annotations

import logging
import threading
import time
from functools import partial
from typing import Callable, List, Optional

from selenium import webdriver
from selenium.common.exceptions import (
    NoSuchElementException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from .config import DEFAULT_PLANNING_URL, Settings
from .errors import ContainerUnavailable, PageAccessError, PaginationNotFound
from .event_html import parse_height_style, parse_position_style, parse_size_style
from .grid_geometry import GridContainer
from .models import RawCell

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
#  Constants
# ──────────────────────────────────────────────────────────────────

USERNAME_SELECTOR = "input#username"
GRID_SELECTOR = "div.grilleData"
EVENT_BLOCK_SELECTOR = "div.grilleData > div"
EVENT_TABLE_SELECTOR = "table.event"
EVENT_TEXT_SELECTOR = "div.eventText"
WEEK_BUTTON_SELECTOR = "button.x-btn-text"


# ──────────────────────────────────────────────────────────────────
#  Driver helpers
# ──────────────────────────────────────────────────────────────────

_driver_path_lock = threading.Lock()
_driver_path: Optional[str] = None


def _chromedriver_path() -> str:
    """Install chromedriver once; concurrent sessions share the same binary."""
    global _driver_path
    with _driver_path_lock:
        if _driver_path is None:
            _driver_path = ChromeDriverManager().install()
        return _driver_path


def _create_driver(headless: bool, page_timeout: float) -> webdriver.Chrome:
    """Create a Chrome WebDriver instance that skips images and stylesheets."""
    options = Options()
    if headless:
        options.add_argument("--headless=new")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--blink-settings=imagesEnabled=false")
    options.add_argument("--window-size=1600,1200")
    try:
        service = Service(_chromedriver_path())
        driver = webdriver.Chrome(service=service, options=options)
    except Exception as e:
        raise PageAccessError(
            f"Could not start Chrome. Install Chrome and run again.\nError: {e}"
        ) from e

    driver.set_page_load_timeout(page_timeout)
    try:
        # The grid layout is inline style; the stylesheets are not needed.
        driver.execute_cdp_cmd("Network.enable", {})
        driver.execute_cdp_cmd("Network.setBlockedURLs", {"urls": ["*.css"]})
    except WebDriverException as e:
        logger.debug("Stylesheet blocking unavailable: %s", e)
    return driver


# ──────────────────────────────────────────────────────────────────
#  Page accessor
# ──────────────────────────────────────────────────────────────────

class PlanningPage:
    """
    One logged-in browser session on the planning page.

    Use as a context manager: entering logs in, leaving quits the browser.
    """

    def __init__(
        self,
        username: str,
        password: str,
        url: str = DEFAULT_PLANNING_URL,
        day_count: int = 7,
        headless: bool = True,
        page_timeout: float = 30,
        cell_timeout: float = 10,
        settle_seconds: float = 1.5,
    ):
        self.username = username
        self.password = password
        self.url = url
        self.day_count = day_count
        self.headless = headless
        self.page_timeout = page_timeout
        self.cell_timeout = cell_timeout
        self.settle_seconds = settle_seconds
        self._driver: Optional[webdriver.Chrome] = None

    def __enter__(self) -> "PlanningPage":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def driver(self) -> webdriver.Chrome:
        if self._driver is None:
            raise PageAccessError("Page session is not open")
        return self._driver

    def open(self) -> None:
        self._driver = _create_driver(self.headless, self.page_timeout)
        try:
            self._login()
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        if self._driver is not None:
            try:
                self._driver.quit()
            except WebDriverException as e:
                logger.debug("Error while quitting Chrome: %s", e)
            self._driver = None

    def _wait(self, timeout: Optional[float] = None) -> WebDriverWait:
        return WebDriverWait(self.driver, timeout or self.page_timeout)

    def _wait_for_grid(self) -> WebElement:
        return self._wait().until(
            EC.presence_of_element_located((By.CSS_SELECTOR, GRID_SELECTOR))
        )

    def _login(self) -> None:
        driver = self.driver
        logger.info("Navigating to %s", self.url)
        try:
            driver.get(self.url)
            username = self._wait().until(
                EC.presence_of_element_located((By.CSS_SELECTOR, USERNAME_SELECTOR))
            )
            username.send_keys(self.username, Keys.TAB)
            driver.switch_to.active_element.send_keys(self.password, Keys.ENTER)

            try:
                self._wait_for_grid()
            except TimeoutException:
                logger.info("Planning grid did not show up, reloading to retry")
                driver.refresh()
                self._wait_for_grid()
        except TimeoutException as e:
            raise PageAccessError(f"Planning page did not load from {self.url}") from e
        except WebDriverException as e:
            raise PageAccessError(f"Login failed: {e}") from e

    def get_container_dimensions(self) -> GridContainer:
        """Read the pixel size of the planning grid."""
        try:
            grid = self.driver.find_element(By.CSS_SELECTOR, GRID_SELECTOR)
            try:
                width, height = parse_size_style(grid.get_attribute("style") or "")
            except ValueError:
                size = grid.size
                width, height = int(size["width"]), int(size["height"])
            return GridContainer(width, height, day_count=self.day_count)
        except (WebDriverException, ValueError) as e:
            raise ContainerUnavailable(f"Cannot read planning container: {e}") from e

    def activate_week(self, label: str) -> None:
        """Click the pagination button whose text contains ``label``, e.g. "(43)"."""
        try:
            try:
                buttons = self._wait().until(
                    EC.presence_of_all_elements_located((By.CSS_SELECTOR, WEEK_BUTTON_SELECTOR))
                )
            except TimeoutException as e:
                raise PaginationNotFound(label) from e

            for button in buttons:
                if label in (button.text or ""):
                    button.click()
                    time.sleep(self.settle_seconds)
                    self._wait_for_grid()
                    return
        except TimeoutException as e:
            raise PageAccessError(f"Planning grid did not reload after clicking {label}") from e
        except WebDriverException as e:
            raise PageAccessError(f"Pagination to {label} failed: {e}") from e
        raise PaginationNotFound(label)

    def list_event_cells(self) -> List[RawCell]:
        """Read all event blocks of the displayed week; empty when the week has none."""
        try:
            blocks = WebDriverWait(self.driver, self.cell_timeout).until(
                EC.presence_of_all_elements_located((By.CSS_SELECTOR, EVENT_BLOCK_SELECTOR))
            )
        except TimeoutException:
            return []
        except WebDriverException as e:
            raise PageAccessError(f"Cannot list event blocks: {e}") from e

        cells: List[RawCell] = []
        for block in blocks:
            try:
                cells.append(_read_cell(block))
            except (NoSuchElementException, StaleElementReferenceException, ValueError) as e:
                logger.warning("Skipping unreadable event block: %s", e)
            except WebDriverException as e:
                raise PageAccessError(f"Cannot read event block: {e}") from e
        return cells


def _read_cell(block: WebElement) -> RawCell:
    x_px, y_px = parse_position_style(block.get_attribute("style") or "")
    table = block.find_element(By.CSS_SELECTOR, EVENT_TABLE_SELECTOR)
    height_px = parse_height_style(table.get_attribute("style") or "")
    text = block.find_element(By.CSS_SELECTOR, EVENT_TEXT_SELECTOR)
    return RawCell(x_px, y_px, height_px, text.get_attribute("outerHTML") or "")


def planning_page_factory(settings: Settings) -> Callable[[], PlanningPage]:
    """Return a zero-argument callable opening new sessions with ``settings``."""
    return partial(
        PlanningPage,
        username=settings.username,
        password=settings.password,
        url=settings.planning_url,
        day_count=settings.day_count,
        headless=settings.headless,
        page_timeout=settings.page_timeout,
    )
