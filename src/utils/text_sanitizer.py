import re

class TextSanitizer:
    # Caractères de contrôle (C0, DEL et C1) : les accents restent affichables
    _control_regex = re.compile(r'[\x00-\x1f\x7f-\x9f]')

    @staticmethod
    def clean(text):
        """
        Nettoie une valeur de l'annuaire pour qu'elle s'affiche sans risque dans curses.
        - Convertit en str (None devient une chaîne vide).
        - Supprime les octets nuls.
        - Remplace les autres caractères de contrôle par '�'.
        """
        if text is None:
            return ""
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")
        s = str(text).replace('\x00', '')
        return TextSanitizer._control_regex.sub('�', s)

    @staticmethod
    def fit(text, width):
        """Tronque par la gauche avec '…' si le texte dépasse `width`."""
        s = TextSanitizer.clean(text)
        if width <= 0:
            return ""
        if len(s) > width:
            return "…" + s[-(width - 1):] if width > 1 else "…"
        return s
