import curses
from contextlib import contextmanager

from utils.text_sanitizer import TextSanitizer

# Touches normalisées renvoyées par read_key() ; les caractères imprimables
# sont renvoyés tels quels (str de longueur 1).
KEY_UP = "UP"
KEY_DOWN = "DOWN"
KEY_ENTER = "ENTER"
KEY_ESCAPE = "ESCAPE"
KEY_BACKSPACE = "BACKSPACE"
KEY_PAGE_UP = "PAGE_UP"
KEY_PAGE_DOWN = "PAGE_DOWN"
KEY_HOME = "HOME"
KEY_END = "END"
KEY_RESIZE = "RESIZE"
KEY_UNKNOWN = ""

STYLE_NORMAL = "normal"
STYLE_HIGHLIGHT = "highlight"
STYLE_TITLE = "title"
STYLE_DIM = "dim"
STYLE_ERROR = "error"
STYLE_SUCCESS = "success"

_SPECIAL_KEYS = {
    curses.KEY_UP: KEY_UP,
    curses.KEY_DOWN: KEY_DOWN,
    curses.KEY_ENTER: KEY_ENTER,
    curses.KEY_BACKSPACE: KEY_BACKSPACE,
    curses.KEY_PPAGE: KEY_PAGE_UP,
    curses.KEY_NPAGE: KEY_PAGE_DOWN,
    curses.KEY_HOME: KEY_HOME,
    curses.KEY_END: KEY_END,
    curses.KEY_RESIZE: KEY_RESIZE,
}

# Séquences ANSI quand le terminal n'envoie pas les codes curses (ESC [ X)
_ANSI_KEYS = {
    "A": KEY_UP,
    "B": KEY_DOWN,
    "H": KEY_HOME,
    "F": KEY_END,
}


@contextmanager
def cursor_visibility(terminal, visible):
    """Fixe la visibilité du curseur le temps du bloc et restaure toujours l'état précédent."""
    previous = terminal.set_cursor_visible(visible)
    try:
        yield terminal
    finally:
        terminal.set_cursor_visible(previous)


def hidden_cursor(terminal):
    return cursor_visibility(terminal, False)


class CursesTerminal:
    """
    Capacité terminal au-dessus d'une fenêtre curses.

    Les widgets (menus, saisies, visionneuse) n'appellent que ces méthodes ;
    les tests leur passent un faux terminal scripté.
    """

    def __init__(self, win):
        self.win = win
        self.win.keypad(True)
        self._cursor_visible = False

    def size(self):
        return self.win.getmaxyx()

    def _next_char(self):
        self.win.nodelay(True)
        try:
            return self.win.get_wch()
        except curses.error:
            return None
        finally:
            self.win.nodelay(False)

    def read_key(self):
        key = self.win.get_wch()

        if isinstance(key, int):
            return _SPECIAL_KEYS.get(key, KEY_UNKNOWN)

        if key in ("\n", "\r"):
            return KEY_ENTER
        if key in ("\x7f", "\x08"):
            return KEY_BACKSPACE
        if key == "\x1b":
            # ESC seul ou début d'une séquence de flèche
            next1 = self._next_char()
            if next1 is None:
                return KEY_ESCAPE
            if next1 in ("[", "O"):
                next2 = self._next_char()
                return _ANSI_KEYS.get(next2, KEY_UNKNOWN)
            return KEY_UNKNOWN
        if not key.isprintable():
            return KEY_UNKNOWN
        return key

    def _attr(self, style):
        if style == STYLE_HIGHLIGHT:
            return curses.A_REVERSE
        if style == STYLE_TITLE:
            return curses.A_BOLD
        if style == STYLE_DIM:
            return curses.A_DIM
        if style == STYLE_ERROR:
            return curses.color_pair(3) | curses.A_BOLD
        if style == STYLE_SUCCESS:
            return curses.color_pair(4)
        return curses.A_NORMAL

    def write(self, y, x, text, style=STYLE_NORMAL):
        height, width = self.size()
        if y < 0 or y >= height or x >= width:
            return
        text = TextSanitizer.clean(text)[:max(0, width - x - 1)]
        try:
            self.win.addstr(y, x, text, self._attr(style))
        except curses.error:
            pass

    def clear(self):
        self.win.erase()

    def refresh(self):
        self.win.refresh()

    @property
    def cursor_visible(self):
        return self._cursor_visible

    def set_cursor_visible(self, visible):
        """Change la visibilité du curseur et renvoie l'état précédent."""
        previous = self._cursor_visible
        try:
            curses.curs_set(1 if visible else 0)
        except curses.error:
            # Certains terminaux ne savent pas masquer le curseur
            pass
        self._cursor_visible = bool(visible)
        return previous

    def show_message(self, text, is_error=False):
        height, width = self.size()
        try:
            self.win.move(height - 1, 0)
            self.win.clrtoeol()
        except curses.error:
            pass
        self.write(height - 1, 2, text, STYLE_ERROR if is_error else STYLE_SUCCESS)
        self.refresh()
