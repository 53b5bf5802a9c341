"""
Selenium implementation of the BoardDriver protocol for the chess.com analysis / practice board.

All page specific knowledge (urls, css selectors, what the piece classes look like) lives in this module.
"""

import logging
import re
from typing import Any, Callable, Optional

from selenium import webdriver
from selenium.common.exceptions import (
    NoSuchElementException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from src.chess.pieces import LETTER_TO_COLOR, LETTER_TO_PIECE, PROMOTION_LETTERS, Piece
from src.chess.snapshot import Snapshot
from src.chess.square import Square
from src.core.config import AutomatorSettings
from src.core.exceptions import (
    BoardDriverError,
    InvalidMoveError,
    InvalidPromotionPieceError,
    InvalidSquareError,
)
from src.core.models import BotEntry, BotListing, BotRef
from src.core.shared_types import Color

logger = logging.getLogger(__name__)

DriverFactory = Callable[[AutomatorSettings], WebDriver]

# --- SELECTORS ---
SETTINGS_BUTTON = (By.ID, "board-controls-settings")
FLIP_BUTTON = (By.ID, "board-controls-flip")
PGN_TEXTAREA = (By.CSS_SELECTOR, "textarea.cc-textarea-component.load-from-pgn-textarea")
ADD_GAMES_BUTTON = (
    By.XPATH,
    "//button[contains(@class, 'cc-button-primary')]//span[text()='Add Game(s)']/ancestor::button",
)
MOVE_LIST = (By.CSS_SELECTOR, "div.analysis-view-scrollable")
PLY_NODES = (By.CSS_SELECTOR, "div.node.main-line-ply")
PRACTICE_BUTTON = (By.CSS_SELECTOR, "button[aria-label='Practice vs Computer']")
ANALYSIS_PIECES = (By.CSS_SELECTOR, "#board-analysis-board .piece")
PRACTICE_BOARD = (By.ID, "board-board")
PRACTICE_PIECES = (By.CSS_SELECTOR, "#board-board .piece")
PROMOTION_WINDOW = (By.CSS_SELECTOR, ".promotion-window")
CHANGE_BOT_BUTTON = (By.CSS_SELECTOR, "button[aria-label='Change Bot']")
BOT_SCROLL_CONTAINER = (By.CSS_SELECTOR, "div.bot-selection-scroll")
BOT_TILES = (By.CSS_SELECTOR, "li.bot-component")
BOT_LOCK = (By.CSS_SELECTOR, "span.cc-icon-glyph.cc-icon-small.bot-lock")
BOT_AVATAR = (By.CSS_SELECTOR, "img.bot-img")
SELECTED_BOT_NAME = (By.CSS_SELECTOR, "span.selected-bot-name")
SELECTED_BOT_RATING = (By.CSS_SELECTOR, "span.selected-bot-rating")
ENGINE_SLIDER = (By.CSS_SELECTOR, "input.slider-input[type='range']")
MENU_BACK_BUTTON = (By.CSS_SELECTOR, "button.selection-menu-back")
CHOOSE_BUTTON = (
    By.XPATH,
    "//button[contains(@class, 'cc-button-primary')]//span[text()='Choose']/ancestor::button",
)
PLAYER_ROW = (By.CLASS_NAME, "player-row-component")
PLAYER_NAME = (By.CSS_SELECTOR, "[data-test-element='user-tagline-username']")
PLAYER_RATING = (By.CLASS_NAME, "cc-user-rating-white")
PLAYER_AVATAR = (By.CSS_SELECTOR, "img.cc-avatar-img")
HISTORY_NODES = (By.CSS_SELECTOR, "div.node")
MOVE_BACK_BUTTON = (By.CSS_SELECTOR, "button[aria-label='Move Back']")

PROMOTION_SELECTORS: dict[str, str] = {
    letter: f".promotion-piece.w{letter}, .promotion-piece.b{letter}"
    for letter in PROMOTION_LETTERS
}

SCROLL_STEP_JS = "arguments[0].scrollTop += 1200;"
AT_BOTTOM_JS = "let el = arguments[0]; return el.scrollTop + el.offsetHeight >= el.scrollHeight - 5;"
SET_SLIDER_JS = """
    const slider = arguments[0];
    const value = arguments[1];
    slider.value = value;
    slider.setAttribute('value', value);
    slider.dispatchEvent(new Event('input', { bubbles: true }));
    slider.dispatchEvent(new Event('change', { bubbles: true }));
"""

_WEBDRIVER_NOISE_RE = re.compile(
    r"\s*\n\s*\(Session info:.*" r"|\s*Stacktrace:\s*\n.*",
    re.DOTALL,
)


def short_error(exc: BaseException) -> str:
    """Concise one-liner from a (possibly very verbose) WebDriver exception."""
    msg = _WEBDRIVER_NOISE_RE.sub("", str(exc)).strip()
    msg = re.sub(r"^Message:\s*", "", msg)
    return msg or type(exc).__name__


def parse_piece_classes(class_attr: str) -> Optional[tuple[Square, Piece]]:
    """
    The board renders every piece as a div like `<div class="piece wp square-52">`.
    ---
    * `wp` / `bk` ...: color letter + piece letter
    * `square-52`: internal square id (file digit, rank digit)

    Returns None for anything that is not a complete piece description (dragged pieces, hover markers, ...).
    """
    piece: Optional[Piece] = None
    square: Optional[Square] = None
    for cls in class_attr.split():
        if len(cls) == 2 and cls[0] in LETTER_TO_COLOR and cls[1] in LETTER_TO_PIECE:
            piece = Piece(LETTER_TO_PIECE[cls[1]], LETTER_TO_COLOR[cls[0]])
        elif cls.startswith("square-"):
            internal_id = cls.split("-", 1)[1]
            try:
                square = Square.from_internal(internal_id)
            except InvalidSquareError:
                return None
    if piece is None or square is None:
        return None
    return square, piece


def strip_rating(text: str) -> str:
    """'(1500)' -> '1500'"""
    return text.strip().replace("(", "").replace(")", "")


def chrome_driver(settings: AutomatorSettings) -> WebDriver:
    """Local Chrome, or a remote Selenium grid when `remote_url` is configured."""
    options = webdriver.ChromeOptions()
    if settings.headless:
        options.add_argument("--headless=new")
    options.add_argument("--disable-gpu")
    options.add_argument("--remote-allow-origins=*")
    options.add_argument(f"--window-size={settings.window_size}")
    options.add_argument("--mute-audio")
    if settings.remote_url:
        logger.info("Connecting to remote Selenium at %s", settings.remote_url)
        return webdriver.Remote(command_executor=settings.remote_url, options=options)
    return webdriver.Chrome(options=options)


class SeleniumBoard:
    """Drives one browser (one tab: the practice board) for one session."""

    def __init__(
        self,
        settings: AutomatorSettings,
        driver_factory: DriverFactory = chrome_driver,
    ) -> None:
        self.settings = settings
        self._driver_factory = driver_factory
        self._driver: Optional[WebDriver] = None
        self._scroll_container: Optional[WebElement] = None
        self._scan_seen: set[str] = set()

    # --- lifecycle ---
    @property
    def driver(self) -> WebDriver:
        if self._driver is None:
            raise BoardDriverError("Browser is not running.")
        return self._driver

    def open(
        self, side: Color, pgn: Optional[str] = None, move_number: int = -1
    ) -> Snapshot:
        """
        Open the analysis board, optionally load a game, hand the board over to the computer.
        ---
        1. load the analysis page (optionally paste the PGN and jump to the requested ply)
        2. flip the board so the computer gets the other side
        3. read the starting position
        4. click "Practice vs Computer" and switch to the tab it opens
        """
        try:
            self._driver = self._driver_factory(self.settings)
            driver = self._driver
            driver.get(self.settings.analysis_url)
            self._wait().until(EC.presence_of_element_located(SETTINGS_BUTTON))
            logger.info("Analysis page loaded.")

            if pgn is not None:
                self._load_pgn(pgn, move_number)
                if side == Color.BLACK:
                    self._flip_board()
            elif side == Color.WHITE:
                self._flip_board()

            self._wait().until(EC.element_to_be_clickable(PRACTICE_BUTTON))
            initial = self._read_pieces(ANALYSIS_PIECES)

            self._js_click(driver.find_element(*PRACTICE_BUTTON))
            driver.switch_to.window(driver.window_handles[-1])
            self._wait().until(EC.presence_of_element_located(PRACTICE_BOARD))
            logger.info("Practice board ready (client plays %s).", side)
            return initial
        except WebDriverException as exc:
            raise BoardDriverError(
                f"Could not open the practice board: {short_error(exc)}"
            ) from exc

    def close(self) -> None:
        if self._driver is None:
            return
        driver, self._driver = self._driver, None
        try:
            driver.quit()
        except WebDriverException as exc:
            logger.warning("Failed to quit browser: %s", short_error(exc))

    # --- position ---
    def get_snapshot(self) -> Snapshot:
        try:
            return self._read_pieces(PRACTICE_PIECES)
        except WebDriverException as exc:
            raise BoardDriverError(
                f"Could not read the board: {short_error(exc)}"
            ) from exc

    def submit_move(self, from_square: Square, to_square: Square) -> None:
        """Click the piece, then click the move hint the board shows on the target square."""
        driver = self.driver
        try:
            piece_el = driver.find_element(
                By.CSS_SELECTOR, f".piece.square-{from_square.to_internal()}"
            )
            ActionChains(driver).move_to_element(piece_el).click().perform()
        except WebDriverException as exc:
            raise InvalidMoveError(
                f"Could not find piece at {from_square.to_algebraic()}"
            ) from exc

        target = to_square.to_internal()
        hint_selector = f".hint.square-{target}, .capture-hint.square-{target}"
        try:
            hint_el = WebDriverWait(driver, self.settings.hint_wait).until(
                lambda d: next(iter(d.find_elements(By.CSS_SELECTOR, hint_selector)), False)
            )
            ActionChains(driver).move_to_element(hint_el).click().perform()
        except (TimeoutException, WebDriverException) as exc:
            raise InvalidMoveError(
                f"Invalid move from {from_square.to_algebraic()} to {to_square.to_algebraic()}"
            ) from exc
        logger.info(
            "Move %s -> %s played on the board.",
            from_square.to_algebraic(),
            to_square.to_algebraic(),
        )

    # --- promotion ---
    def promotion_pending(self) -> bool:
        try:
            return len(self.driver.find_elements(*PROMOTION_WINDOW)) > 0
        except WebDriverException as exc:
            raise BoardDriverError(short_error(exc)) from exc

    def resolve_promotion(self, piece_letter: str) -> None:
        selector = PROMOTION_SELECTORS.get(piece_letter)
        if selector is None:
            raise InvalidPromotionPieceError(f"Invalid piece for promotion: {piece_letter!r}")
        try:
            self.driver.find_element(By.CSS_SELECTOR, selector).click()
        except WebDriverException as exc:
            raise BoardDriverError(
                f"Failed to complete promotion: {short_error(exc)}"
            ) from exc
        logger.info("Promoted to %s", piece_letter.upper())

    # --- bots ---
    def load_catalog_page(self) -> tuple[list[BotListing], bool]:
        """
        Read the bot tiles currently rendered in the selection menu, then scroll one step.
        ---
        The menu is opened on the first call. Reading a tile means clicking it (rating and engine range are only
        shown for the selected bot). When the bottom is reached the menu is closed again and the scan state reset.
        """
        driver = self.driver
        try:
            if self._scroll_container is None:
                self._js_click(self._wait().until(EC.element_to_be_clickable(CHANGE_BOT_BUTTON)))
                self._scroll_container = self._wait().until(
                    EC.presence_of_element_located(BOT_SCROLL_CONTAINER)
                )
                self._scan_seen = set()

            listings: list[BotListing] = []
            try:
                for tile in driver.find_elements(*BOT_TILES):
                    listing = self._read_tile(tile)
                    if listing is not None:
                        listings.append(listing)
            except StaleElementReferenceException:
                logger.debug("Bot tiles re-rendered while reading, retrying next page.")

            driver.execute_script(SCROLL_STEP_JS, self._scroll_container)
            at_bottom = bool(driver.execute_script(AT_BOTTOM_JS, self._scroll_container))
            if at_bottom:
                self._close_bot_menu()
            return listings, at_bottom
        except WebDriverException as exc:
            self._scroll_container = None
            raise BoardDriverError(
                f"Failed to load bot list: {short_error(exc)}"
            ) from exc

    def choose_bot(self, bot: BotEntry, engine_level: Optional[int] = None) -> None:
        driver = self.driver
        try:
            self._js_click(self._wait().until(EC.element_to_be_clickable(CHANGE_BOT_BUTTON)))
            container = self._wait().until(EC.presence_of_element_located(BOT_SCROLL_CONTAINER))

            tile = self._find_tile(bot, container)
            if tile is None:
                raise BoardDriverError(f"Could not find bot {bot.name!r} in list")
            self._js_click(tile)
            logger.info("Bot tile clicked: %s", bot.name)

            if bot.is_engine and engine_level is not None:
                slider = self._wait().until(EC.presence_of_element_located(ENGINE_SLIDER))
                self._set_slider(slider, engine_level - 1)
                logger.info("Engine level set to %d", engine_level)

            self._js_click(self._wait().until(EC.element_to_be_clickable(CHOOSE_BUTTON)))
            logger.info("Bot selection confirmed.")
        except WebDriverException as exc:
            raise BoardDriverError(f"Failed to select bot: {short_error(exc)}") from exc

    def current_bot(self) -> Optional[BotRef]:
        try:
            container = self._wait().until(EC.presence_of_element_located(PLAYER_ROW))
            name = container.find_element(*PLAYER_NAME).text.strip()
            rating = strip_rating(container.find_element(*PLAYER_RATING).text)
            avatar = container.find_element(*PLAYER_AVATAR).get_dom_attribute("src")
            return BotRef(name=name, rating=rating, avatar=avatar)
        except WebDriverException as exc:
            logger.warning("Failed to fetch current bot info: %s", short_error(exc))
            return None

    # --- history ---
    def history_length(self) -> int:
        try:
            return len(self.driver.find_elements(*HISTORY_NODES))
        except WebDriverException as exc:
            raise BoardDriverError(short_error(exc)) from exc

    def step_back(self) -> None:
        driver = self.driver
        try:
            button = self._wait().until(EC.element_to_be_clickable(MOVE_BACK_BUTTON))
            ActionChains(driver).move_to_element(button).click().perform()
        except WebDriverException as exc:
            raise BoardDriverError(
                f"Failed to undo last move: {short_error(exc)}"
            ) from exc

    # -- Internal helpers --
    def _wait(self, timeout: Optional[float] = None) -> WebDriverWait:
        return WebDriverWait(self.driver, timeout or self.settings.element_wait)

    def _js_click(self, element: WebElement) -> None:
        self.driver.execute_script("arguments[0].click();", element)

    def _read_pieces(self, locator: tuple[str, str]) -> Snapshot:
        pieces: dict[Square, Piece] = {}
        for element in self.driver.find_elements(*locator):
            parsed = parse_piece_classes(element.get_attribute("class") or "")
            if parsed is not None:
                square, piece = parsed
                pieces[square] = piece
        return Snapshot(pieces)

    def _flip_board(self) -> None:
        driver = self.driver
        settings_button = driver.find_element(*SETTINGS_BUTTON)
        ActionChains(driver).move_to_element(settings_button).perform()
        flip_button = self._wait().until(EC.presence_of_element_located(FLIP_BUTTON))
        self._js_click(flip_button)
        logger.info("Board flipped.")

    def _load_pgn(self, pgn: str, move_number: int) -> None:
        """Paste the PGN, add the game and click the requested ply (the last one when move_number < 0)."""
        driver = self.driver
        textarea = self._wait().until(EC.presence_of_element_located(PGN_TEXTAREA))
        textarea.clear()
        textarea.send_keys(pgn)
        self._js_click(driver.find_element(*ADD_GAMES_BUTTON))
        logger.info("PGN loaded.")

        move_div: Optional[WebElement] = None
        if move_number >= 0:
            move_list = self._wait().until(EC.presence_of_element_located(MOVE_LIST))
            try:
                move_div = move_list.find_element(
                    By.CSS_SELECTOR,
                    f"div.node.main-line-ply[data-node='0-{move_number}']",
                )
            except NoSuchElementException:
                logger.warning("No move found for move number %d", move_number)
        else:
            nodes = driver.find_elements(*PLY_NODES)
            move_div = max(nodes, key=_ply_index, default=None)

        if move_div is not None:
            move_div.click()

    def _read_tile(self, tile: WebElement) -> Optional[BotListing]:
        """Select a tile to reveal its rating. Locked and already seen tiles are skipped."""
        name = tile.get_attribute("data-bot-name")
        if name is None or name in self._scan_seen:
            return None
        self._scan_seen.add(name)
        if tile.find_elements(*BOT_LOCK):
            return None

        driver = self.driver
        initial_name = driver.find_element(*SELECTED_BOT_NAME).text.strip()
        self._js_click(tile)
        if initial_name != name:
            self._wait().until(
                lambda d: d.find_element(*SELECTED_BOT_NAME).text.strip() != initial_name
            )

        classification = (tile.get_attribute("data-bot-classification") or "").lower()
        avatars = tile.find_elements(*BOT_AVATAR)
        avatar = avatars[0].get_attribute("src") if avatars else None
        if avatar is None:
            logger.warning("No avatar for bot %r", name)

        if classification == "engine":
            slider = self._wait().until(EC.presence_of_element_located(ENGINE_SLIDER))
            self._set_slider(slider, int(slider.get_attribute("min") or 0))
            rating_start = self._selected_rating()
            self._set_slider(slider, int(slider.get_attribute("max") or 0))
            rating_end = self._selected_rating()
            engine_name = f"Engine ({rating_start}-{rating_end})"
            self._scan_seen.add(engine_name)
            return BotListing(
                name=engine_name,
                rating=rating_end,
                is_engine=True,
                avatar=avatar,
                classification=classification,
            )
        return BotListing(
            name=name,
            rating=self._selected_rating(),
            is_engine=False,
            avatar=avatar,
            classification=classification or None,
        )

    def _find_tile(self, bot: BotEntry, container: WebElement) -> Optional[WebElement]:
        """Scroll through the menu until the tile for `bot` shows up."""
        driver = self.driver
        while True:
            for tile in driver.find_elements(*BOT_TILES):
                classification = (tile.get_attribute("data-bot-classification") or "").lower()
                if bot.is_engine and classification == "engine":
                    return tile
                if tile.get_attribute("data-bot-name") == bot.name and classification == (
                    bot.classification or ""
                ):
                    return tile
            driver.execute_script(SCROLL_STEP_JS, container)
            if driver.execute_script(AT_BOTTOM_JS, container):
                return None

    def _selected_rating(self) -> str:
        return strip_rating(self.driver.find_element(*SELECTED_BOT_RATING).text)

    def _set_slider(self, slider: WebElement, target: int) -> None:
        """Move the engine strength slider and wait until the shown rating follows."""
        low = int(slider.get_attribute("min") or 0)
        high = int(slider.get_attribute("max") or 0)
        if not low <= target <= high:
            raise BoardDriverError(f"Slider value {target} outside {low}-{high}")
        if int(slider.get_attribute("value") or low) == target:
            return

        initial_rating = self._selected_rating()
        self.driver.execute_script(SET_SLIDER_JS, slider, target)
        self._wait().until(
            lambda d: strip_rating(d.find_element(*SELECTED_BOT_RATING).text) != initial_rating
        )

    def _close_bot_menu(self) -> None:
        self._scroll_container = None
        back_buttons = self.driver.find_elements(*MENU_BACK_BUTTON)
        if back_buttons:
            self._js_click(back_buttons[0])


def _ply_index(node: Any) -> int:
    """'0-17' -> 17"""
    try:
        return int((node.get_attribute("data-node") or "").split("-")[1])
    except (IndexError, ValueError):
        return -1
