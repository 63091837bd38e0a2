import logging

from utils.text_sanitizer import TextSanitizer

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
    STYLE_HIGHLIGHT,
    STYLE_NORMAL,
    STYLE_TITLE,
    hidden_cursor,
)

logger = logging.getLogger(__name__)

# Résultat distinct de None (Échap) : l'utilisateur veut quitter
QUITTER = "Quitter"

MENU_INSTRUCTIONS = "↑/↓: Naviguer | Entrée: Choisir | Échap: Retour | {quit}: Quitter"
NO_OPTIONS = "Aucune option disponible"
TEXT_MARGIN = 2


class AwesomeMenu(Renderizable):

    def __init__(self, title, options, terminal=None, selected=0, quit_key="q"):
        super().__init__(terminal)
        self.title = title
        self.options = list(options)
        self.quit_key = quit_key
        self.selected_option = selected % len(self.options) if self.options else 0
        self.scroll_offset = 0
        self.visible_rows = 1

    def _layout(self):
        instructions = MENU_INSTRUCTIONS.format(quit=self.quit_key or "-")
        max_option_width = max(len(p) for p in self.options) if self.options else 20
        max_option_width = max(max_option_width, len(self.title), len(instructions))
        box_width = min(max(max_option_width + 4, 40), max(1, self.width - 2))

        # titre + séparateur + options + séparateur + instructions
        self.visible_rows = max(1, min(len(self.options), self.height - 5))
        box_height = self.visible_rows + 4
        start_y = max(0, (self.height - box_height) // 2)
        start_x = max(0, (self.width - box_width) // 2)
        return instructions, box_width, start_y, start_x

    def _draw(self):
        instructions, box_width, start_y, start_x = self._layout()
        self.terminal.clear()

        self.terminal.write(start_y, start_x + max(0, (box_width - len(self.title)) // 2), self.title, STYLE_TITLE)
        self.terminal.write(start_y + 1, start_x, "─" * box_width, STYLE_DIM)

        # Ajuster le scroll si l'option choisie sort de la zone visible
        if self.selected_option < self.scroll_offset:
            self.scroll_offset = self.selected_option
        elif self.selected_option >= self.scroll_offset + self.visible_rows:
            self.scroll_offset = self.selected_option - self.visible_rows + 1

        max_text_width = box_width - TEXT_MARGIN - 2
        last = min(len(self.options), self.scroll_offset + self.visible_rows)
        for idx in range(self.scroll_offset, last):
            part_display = TextSanitizer.fit(self.options[idx], max_text_width)
            style = STYLE_HIGHLIGHT if idx == self.selected_option else STYLE_NORMAL
            y = start_y + 2 + idx - self.scroll_offset
            self.terminal.write(y, start_x + TEXT_MARGIN, part_display.ljust(max_text_width), style)

        # Indicateurs de défilement
        if self.scroll_offset > 0:
            self.terminal.write(start_y + 2, start_x + box_width - 1, "▲")
        if last < len(self.options):
            self.terminal.write(start_y + 1 + self.visible_rows, start_x + box_width - 1, "▼")

        bottom = start_y + 2 + self.visible_rows
        self.terminal.write(bottom, start_x, "─" * box_width, STYLE_DIM)
        self.terminal.write(bottom + 1, start_x + max(0, (box_width - len(instructions)) // 2), instructions, STYLE_DIM)
        self.terminal.refresh()

    def render(self):
        """
        Affiche le menu et attend un choix.

        Returns:
            int | None | str: l'index choisi, None sur Échap, QUITTER sur la touche de sortie.
        """
        if not self.options:
            logger.info(f"Menu '{self.title}' sans option")
            self.terminal.show_message(NO_OPTIONS)
            return None

        count = len(self.options)
        with hidden_cursor(self.terminal):
            while True:
                self._draw()
                key = self.terminal.read_key()

                if key == KEY_UP:
                    self.selected_option = (self.selected_option - 1) % count
                elif key == KEY_DOWN:
                    self.selected_option = (self.selected_option + 1) % count
                elif key == KEY_PAGE_UP:
                    self.selected_option = max(0, self.selected_option - self.visible_rows)
                elif key == KEY_PAGE_DOWN:
                    self.selected_option = min(count - 1, self.selected_option + self.visible_rows)
                elif key == KEY_HOME:
                    self.selected_option = 0
                elif key == KEY_END:
                    self.selected_option = count - 1
                elif key == KEY_ENTER:
                    self.clear()
                    return self.selected_option
                elif key == KEY_ESCAPE:
                    self.clear()
                    return None
                elif self.quit_key and len(key) == 1 and key.lower() == self.quit_key.lower():
                    self.clear()
                    return QUITTER
