"""SSFU entry point."""

import asyncio
import sys

from dotenv import find_dotenv, load_dotenv

from .cli import run_cli


def main() -> None:
    """Load .env, then run the Telegram bot (`ssfu bot`) or the CLI."""
    load_dotenv(find_dotenv(usecwd=True))

    if len(sys.argv) > 1 and sys.argv[1] == "bot":
        from .config import apply_env, load_config
        from .logging import configure_logger
        from .telegram import TelegramBot

        config = apply_env(load_config())
        configure_logger(log_dir=config.log_dir)
        bot = TelegramBot(config=config)
        bot.run()
        return

    asyncio.run(run_cli())


if __name__ == "__main__":
    main()
