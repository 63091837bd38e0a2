from .renderizable import Renderizable
from .terminal import (
    KEY_BACKSPACE,
    KEY_ENTER,
    KEY_ESCAPE,
    STYLE_DIM,
    STYLE_HIGHLIGHT,
    STYLE_TITLE,
    cursor_visibility,
)

class AwesomeInput(Renderizable):
    """
    Champ de saisie d'une ligne.

    ENTRÉE valide (texte sans espaces de bord), ÉCHAP annule (None).
    En mode `secret`, chaque caractère est affiché comme '*'.
    """

    def __init__(self, terminal=None, prompt=" Saisir ici ", footer=" ENTRÉE: valider  •  ÉCHAP: annuler ",
                 width_hint=48, default_text="", secret=False, max_length=128):
        super().__init__(terminal)
        self.prompt = prompt
        self.footer = footer
        self.width_hint = width_hint
        self.default_text = default_text
        self.secret = secret
        self.max_length = max_length

    def _draw(self, text):
        box_w = min(max(self.width_hint, len(self.prompt) + 6), max(30, self.width - 6))
        start_y = max(0, (self.height - 5) // 2)
        start_x = max(0, (self.width - box_w) // 2)
        input_w = box_w - 4

        shown = "*" * len(text) if self.secret else text
        # On garde la fin visible quand le texte dépasse le champ
        shown = shown[-(input_w - 1):] if len(shown) >= input_w else shown

        self.terminal.clear()
        self.terminal.write(start_y, start_x + max(0, (box_w - len(self.prompt)) // 2), self.prompt, STYLE_TITLE)
        self.terminal.write(start_y + 2, start_x + 2, shown.ljust(input_w), STYLE_HIGHLIGHT)
        self.terminal.write(start_y + 4, start_x + max(0, (box_w - len(self.footer)) // 2), self.footer, STYLE_DIM)
        self.terminal.refresh()

    def render(self):
        text = list(self.default_text)
        with cursor_visibility(self.terminal, True):
            try:
                while True:
                    self._draw("".join(text))
                    key = self.terminal.read_key()

                    if key == KEY_ENTER:
                        return "".join(text).strip()
                    if key == KEY_ESCAPE:
                        return None
                    if key == KEY_BACKSPACE:
                        if text:
                            text.pop()
                    elif len(key) == 1 and len(text) < self.max_length:
                        text.append(key)
            finally:
                self.clear()
