import curses
from utils.singleton import Singleton
from .terminal import CursesTerminal

HEADER_HEIGHT = 3
FOOTER_HEIGHT = 3
MAIN_HELP = " ↑↓: Choisir | ENTRÉE: Valider | ÉCHAP: Retour | {quit}: Quitter"


def main_help(quit_key):
    return MAIN_HELP.format(quit=quit_key)


class UIHandler(metaclass=Singleton):
    """Écran curses de l'application : couleurs, en-tête, pied de page et zone centrale."""

    def __init__(self, stdscr, quit_key="q"):
        self.stdscr = stdscr
        self.quit_key = quit_key
        self._init_ui()

    def _init_ui(self):
        curses.noecho()
        curses.cbreak()
        self.stdscr.keypad(True)

        if curses.has_colors():
            curses.start_color()
            curses.init_pair(1, curses.COLOR_WHITE, curses.COLOR_BLUE)  # En-tête
            curses.init_pair(2, curses.COLOR_BLACK, curses.COLOR_WHITE)  # Saisie
            curses.init_pair(3, curses.COLOR_RED, curses.COLOR_BLACK)    # Erreur
            curses.init_pair(4, curses.COLOR_GREEN, curses.COLOR_BLACK)  # Succès

        self.stdscr.clear()
        self.stdscr.refresh()

        height, width = self.stdscr.getmaxyx()
        body_height = max(1, height - HEADER_HEIGHT - FOOTER_HEIGHT)
        self.body_win = self.stdscr.derwin(body_height, width, HEADER_HEIGHT, 0)
        self.terminal = CursesTerminal(self.body_win)
        self.terminal.set_cursor_visible(False)

    def draw_header(self, title, subtitle=""):
        """Dessine l'en-tête"""
        height, width = self.stdscr.getmaxyx()
        header = curses.newwin(HEADER_HEIGHT, width, 0, 0)
        header.bkgd(' ', curses.color_pair(1))
        try:
            header.addstr(1, 2, title[:width - 4], curses.A_BOLD)
            if subtitle:
                header.addstr(1, max(2, width - len(subtitle) - 4), f"[{subtitle}]", curses.A_BOLD)
        except curses.error:
            pass
        header.refresh()

    def draw_footer(self, help_text=None, message="", is_error=False):
        help_text = help_text or main_help(self.quit_key)
        height, width = self.stdscr.getmaxyx()
        footer = curses.newwin(FOOTER_HEIGHT, width, height - FOOTER_HEIGHT, 0)
        color = curses.color_pair(3) if is_error else curses.color_pair(4)
        footer.bkgd(' ', curses.color_pair(1))
        try:
            footer.addstr(1, 2, help_text[:width - 4])
            if message:
                footer.addstr(2, 2, message[:width - 4], color)
        except curses.error:
            pass
        footer.refresh()
