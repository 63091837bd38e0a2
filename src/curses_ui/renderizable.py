from .ui_handler import UIHandler

class Renderizable:
    """
    Interface for renderable objects.
    """

    def __init__(self, terminal=None):
        """
        Initialize the Renderizable object.

        Args:
            terminal: The terminal to render in. If None, use the body of the main screen.
        """
        self.terminal = terminal if terminal else UIHandler().terminal
        self.height, self.width = self.terminal.size()

    def render(self):
        """
        Render the object and wait for the user's answer.

        Returns:
            The widget's result (index, text, None when cancelled).
        """
        raise NotImplementedError("Subclasses must implement this method.")

    def clear(self) -> None:
        """
        Clear the rendered object from the terminal.
        """
        self.terminal.clear()
        self.terminal.refresh()
