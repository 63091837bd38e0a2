import logging
import sys
from curses import wrapper

from config.config_loader import load_config
from curses_ui.ui_handler import UIHandler
from curses_ui.xanadu_tools import XanaduTools
from utils.logging_setup import setup_logging
from xanadu_core.errors import ConfigurationError

def safe_main(stdscr, config):
    # Initialize the main window
    ui = UIHandler(stdscr, quit_key=config.quit_key)
    app = XanaduTools(config, ui=ui)
    try:
        if app.connect():
            app.run()
    finally:
        app.close()

def run():
    try:
        config = load_config()
    except ConfigurationError as e:
        print(f"Configuration invalide : {e}")
        return 1

    setup_logging(config.log_file, config.logging_enabled)
    try:
        wrapper(safe_main, config)
    except KeyboardInterrupt:
        print("\nInterrompu par l'utilisateur.")
    except Exception as e:
        logging.getLogger(__name__).exception("Erreur inattendue")
        print(f"Erreur inattendue : {e}")
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(run())
