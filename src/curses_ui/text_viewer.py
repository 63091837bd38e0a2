from .renderizable import Renderizable
from .terminal import (
    KEY_DOWN,
    KEY_END,
    KEY_ENTER,
    KEY_ESCAPE,
    KEY_HOME,
    KEY_PAGE_DOWN,
    KEY_PAGE_UP,
    KEY_UP,
    STYLE_DIM,
    STYLE_TITLE,
    hidden_cursor,
)

FOOTER = "↑/↓: défiler  |  q/ÉCHAP/ENTRÉE: fermer"


class TextViewer(Renderizable):
    """Fenêtre de texte défilante (fiche utilisateur, aide, journal)."""

    def __init__(self, title, text, terminal=None):
        super().__init__(terminal)
        self.title = title
        self.lines = text.splitlines() if isinstance(text, str) else list(text)
        self.offset = 0

    @property
    def visible(self):
        return max(1, self.height - 3)

    def _draw(self):
        self.terminal.clear()
        header = f" {self.title} "
        self.terminal.write(0, max(0, (self.width - len(header)) // 2), header, STYLE_TITLE)
        for i, line in enumerate(self.lines[self.offset:self.offset + self.visible]):
            self.terminal.write(1 + i, 2, line)
        self.terminal.write(self.height - 1, max(0, (self.width - len(FOOTER)) // 2), FOOTER, STYLE_DIM)
        self.terminal.refresh()

    def render(self):
        last = max(0, len(self.lines) - self.visible)
        with hidden_cursor(self.terminal):
            while True:
                self._draw()
                key = self.terminal.read_key()
                if key in (KEY_ESCAPE, KEY_ENTER, "q", "Q"):
                    self.clear()
                    return None
                elif key == KEY_UP and self.offset > 0:
                    self.offset -= 1
                elif key == KEY_DOWN and self.offset < last:
                    self.offset += 1
                elif key == KEY_PAGE_UP:
                    self.offset = max(0, self.offset - self.visible)
                elif key == KEY_PAGE_DOWN:
                    self.offset = min(last, self.offset + self.visible)
                elif key == KEY_HOME:
                    self.offset = 0
                elif key == KEY_END:
                    self.offset = last
