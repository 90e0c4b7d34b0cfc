import asyncio
import json
from pathlib import Path

from main import _load_records, parse_args, stop_task


def test_parse_args_defaults_to_run():
    assert parse_args([]).command is None
    args = parse_args(["import", "--customers", "customers.json"])
    assert args.command == "import"
    assert args.customers == Path("customers.json")
    assert args.renewals is None


def test_load_records_accepts_wrapped_payload(tmp_path):
    plain = tmp_path / "plain.json"
    plain.write_text(json.dumps([{"id": 1}]), encoding="utf-8")
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"data": [{"id": 2}, {"id": 3}]}), encoding="utf-8")

    assert _load_records(plain) == [{"id": 1}]
    assert _load_records(wrapped) == [{"id": 2}, {"id": 3}]
    assert _load_records(None) == []


def test_stop_task_cancels_background_loop():
    async def scenario():
        started = asyncio.Event()

        async def loop():
            started.set()
            await asyncio.sleep(3600)

        task = asyncio.create_task(loop())
        await started.wait()
        await stop_task(task)
        assert task.cancelled()
        await stop_task(None)

    asyncio.run(scenario())


def test_stop_task_logs_crashed_loop(caplog):
    async def scenario():
        async def loop():
            raise RuntimeError("boom")

        task = asyncio.create_task(loop())
        await asyncio.sleep(0)
        await stop_task(task)

    with caplog.at_level("ERROR"):
        asyncio.run(scenario())
    assert "Reminder loop crashed: boom" in caplog.text
