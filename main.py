"""
Task Deadline Bot — Entry Point.

Single entry point: `python main.py` starts the Telegram bot together
with the background deadline notifier.
"""

from src.bot.telegram_bot import main

if __name__ == "__main__":
    main()
