import asyncio
import inspect
import typer
import logging
from dotenv import load_dotenv
from InquirerPy import inquirer
from pnl_indexer.app.config import settings
from pnl_indexer.app.interface.tasks import TASKS
from pnl_indexer.app.interface.tasks.pnl.pnl_worker_task import pnl_worker_task


load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for lending pnl indexing.")
app.add_typer(indexer_app, name="indexer")


@indexer_app.command("run")
def run() -> None:
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()

    task = TASKS[task_name]

    kwargs: dict[str, object] = {}

    sig = inspect.signature(task)
    params = sig.parameters

    if "wallet_address" in params:
        kwargs["wallet_address"] = inquirer.text(
            message="Wallet address (0x...):",
            validate=lambda v: v.strip().startswith("0x") and len(v.strip()) == 42,
            invalid_message="Expected a 0x-prefixed 20-byte address",
        ).execute().strip()

    if "chain_id" in params:
        kwargs["chain_id"] = int(
            inquirer.text(
                message="Chain ID (42161 Arbitrum, 421614 Arbitrum Sepolia):",
                default=str(settings.chain_id),
            ).execute()
        )

    if "days" in params:
        days_str = inquirer.text(
            message="Days of history (1-365):",
            default="30",
        ).execute()
        kwargs["days"] = int(days_str) if days_str.strip() else None

    asyncio.run(task(**kwargs))  # type: ignore


@indexer_app.command("worker")
def worker() -> None:
    """Run the indexer every PNL_INDEXER_INTERVAL_SECONDS until interrupted."""
    try:
        asyncio.run(pnl_worker_task())
    except KeyboardInterrupt:
        typer.echo("worker stopped")


if __name__ == "__main__":
    LOGO = r"""

     /$$$$$$$            /$$        /$$$$$$                 /$$
    | $$__  $$          | $$       |_  $$_/                | $$
    | $$  \ $$ /$$$$$$$ | $$         | $$   /$$$$$$$   /$$$$$$$  /$$$$$$  /$$   /$$  /$$$$$$   /$$$$$$
    | $$$$$$$/| $$__  $$| $$         | $$  | $$__  $$ /$$__  $$ /$$__  $$|  $$ /$$/ /$$__  $$ /$$__  $$
    | $$____/ | $$  \ $$| $$         | $$  | $$  \ $$| $$  | $$| $$$$$$$$ \  $$$$/ | $$$$$$$$| $$  \__/
    | $$      | $$  | $$| $$         | $$  | $$  | $$| $$  | $$| $$_____/  >$$  $$ | $$_____/| $$
    | $$      | $$  | $$| $$$$$$$$  /$$$$$$| $$  | $$|  $$$$$$$|  $$$$$$$ /$$/\  $$|  $$$$$$$| $$
    |__/      |__/  |__/|________/ |______/|__/  |__/ \_______/ \_______/|__/  \__/ \_______/|__/

      --- Lending PnL Indexer CLI ---
    """
    typer.echo(LOGO)
    app()
