import argparse
import asyncio
import json
import logging
from pathlib import Path

from app.bot.app import create_bot, create_dispatcher
from app.config import get_settings
from app.db.init_db import init_db
from app.db.session import SessionLocal, engine
from app.services.notify_service import notify_staff, send_due_reminders
from app.services.sync_service import sync_customers, sync_renewals
from app.whatsapp.client import create_whatsapp_client


async def main() -> None:
    settings = get_settings()

    bot = create_bot(settings.bot_token)
    dp = create_dispatcher()

    await init_db(engine)
    reminder_task = None
    if settings.auto_reminders:
        reminder_task = asyncio.create_task(run_reminder_loop(bot))
    try:
        await dp.start_polling(bot)
    finally:
        await stop_task(reminder_task)


async def stop_task(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logging.error("Reminder loop crashed: %s", exc)


async def run_reminder_loop(bot) -> None:
    settings = get_settings()
    whatsapp = create_whatsapp_client(settings)
    if whatsapp is None:
        logging.warning("Auto reminders disabled: WhatsApp is not configured")
        return
    while True:
        try:
            async with SessionLocal() as session:
                sent = await send_due_reminders(session, whatsapp)
            if sent:
                logging.info("Reminders sent: %s", len(sent))
                await notify_staff(bot, sent)
        except Exception as exc:
            logging.error("Reminder run failed: %s", exc)
        await asyncio.sleep(settings.reminder_interval_seconds)


def _load_records(path: Path | None) -> list[dict]:
    if path is None:
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("data") or data.get("items") or []
    return list(data)


async def run_import(customers_path: Path | None, renewals_path: Path | None) -> None:
    await init_db(engine)
    async with SessionLocal() as session:
        customers = await sync_customers(session, _load_records(customers_path))
        renewals = await sync_renewals(session, _load_records(renewals_path))
    logging.info("Import finished. Customers created/updated=%s Renewals created/updated=%s", customers, renewals)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Service renewal tracker bot")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="start the bot and the reminder loop (default)")
    import_parser = sub.add_parser("import", help="load CRM customer/renewal JSON exports")
    import_parser.add_argument("--customers", type=Path, help="JSON array of customer records")
    import_parser.add_argument("--renewals", type=Path, help="JSON array of renewal records")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(level=get_settings().log_level)
    if args.command == "import":
        asyncio.run(run_import(args.customers, args.renewals))
    else:
        asyncio.run(main())
