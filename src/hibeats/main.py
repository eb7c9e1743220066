#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv

from hibeats.config import gateway_base, load_pipeline_config
from hibeats.events import ProgressEvent
from hibeats.logging_setup import setup_logging
from hibeats.models import GenerationRequest, IngestedTrack, TaskHandle
from hibeats.pipeline import Pipeline
from hibeats.providers import (
    ConfigError,
    GenerationFailed,
    PipelineError,
    get_content_store,
    get_generation_client,
    list_providers,
    list_stores,
)


# ----------------------------
# basic utils
# ----------------------------

def eprint(*args: Any) -> None:
    print(*args, file=sys.stderr)


def print_event(event: ProgressEvent) -> None:
    eprint(f"[{event.level}] {event.message}")


def print_tracks(tracks: List[IngestedTrack], as_json: bool) -> None:
    if as_json:
        print(json.dumps([t.to_dict() for t in tracks], indent=2, ensure_ascii=False))
        return
    for t in tracks:
        genre = ", ".join(t.genre) or "-"
        addr = t.storage_address or "(not stored)"
        print(f"{t.id}  {t.title}  {t.duration}s  [{genre}]  {addr}")
        print(f"    audio: {t.audio_url}")


def build_pipeline(args: argparse.Namespace) -> Pipeline:
    cfg = load_pipeline_config()
    data_dir = Path(args.data_dir) if args.data_dir else cfg.data_dir
    client = get_generation_client(args.provider or cfg.provider, work_dir=data_dir)
    store = get_content_store(args.store or cfg.store, data_dir=data_dir)
    return Pipeline(
        client,
        store,
        max_attempts=args.max_attempts if args.max_attempts is not None else cfg.poll_max_attempts,
        interval_s=args.interval if args.interval is not None else cfg.poll_interval_s,
        ingest_concurrency=args.concurrency if args.concurrency is not None else cfg.ingest_concurrency,
        creator_label=cfg.creator_label,
        observers=[] if args.quiet else [print_event],
    )


def request_from_args(args: argparse.Namespace) -> GenerationRequest:
    return GenerationRequest(
        prompt=args.prompt,
        style=args.style or "",
        title=args.title or "",
        custom_mode=bool(args.custom_mode),
        instrumental=bool(args.instrumental),
        model=args.model,
        negative_tags=args.negative_tags or "",
        vocal_gender=args.vocal_gender or "",
        style_weight=args.style_weight,
        weirdness_constraint=args.weirdness,
        audio_weight=args.audio_weight,
        callback_url=args.callback_url or "",
    )


# ----------------------------
# commands
# ----------------------------

def generate_cmd(args: argparse.Namespace) -> int:
    pipeline = build_pipeline(args)
    tracks = asyncio.run(pipeline.run(request_from_args(args)))
    print_tracks(tracks, args.json)
    return 0


def poll_cmd(args: argparse.Namespace) -> int:
    pipeline = build_pipeline(args)
    tracks = asyncio.run(pipeline.resume(TaskHandle(task_id=args.task_id)))
    print_tracks(tracks, args.json)
    return 0


def status_cmd(args: argparse.Namespace) -> int:
    cfg = load_pipeline_config()
    client = get_generation_client(args.provider or cfg.provider)
    status = client.query_status(TaskHandle(task_id=args.task_id))
    out = {"task_id": args.task_id, "status": type(status).__name__}
    raw = getattr(status, "raw_status", None)
    if raw:
        out["raw_status"] = raw
    reason = getattr(status, "reason", None)
    if reason:
        out["reason"] = reason
    artifacts = getattr(status, "artifacts", None)
    if artifacts is not None:
        out["artifacts"] = [a.id for a in artifacts]
    print(json.dumps(out, indent=2, ensure_ascii=False))
    return 0


def gateway_cmd(args: argparse.Namespace) -> int:
    print(f"{gateway_base()}/{args.hash}")
    return 0


def _add_pipeline_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--provider", default=None, choices=list_providers())
    p.add_argument("--store", default=None, choices=list_stores())
    p.add_argument("--data-dir", default=None, help="Local store / stub work dir (default: HIBEATS_DATA_DIR)")
    p.add_argument("--max-attempts", type=int, default=None)
    p.add_argument("--interval", type=float, default=None, help="Seconds between status queries")
    p.add_argument("--concurrency", type=int, default=None, help="Artifacts ingested in parallel")
    p.add_argument("--json", action="store_true")
    p.add_argument("--quiet", action="store_true", help="Do not print progress events")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="hibeats", description="hibeats generation pipeline CLI")
    p.add_argument("--env", default=".env", help="Path to .env (default: .env)")
    p.add_argument("--log-level", default=os.environ.get("HIBEATS_LOG_LEVEL", "INFO"))
    p.add_argument("--log-dir", default=None)

    sub = p.add_subparsers(dest="cmd", required=True)

    g = sub.add_parser("generate", help="Generate tracks and ingest them")
    g.add_argument("--prompt", required=True)
    g.add_argument("--style", default=None)
    g.add_argument("--title", default=None)
    g.add_argument("--custom-mode", action="store_true")
    g.add_argument("--instrumental", action="store_true")
    g.add_argument("--model", default="V3_5", choices=["V3_5", "V4", "V4_5"])
    g.add_argument("--negative-tags", default=None)
    g.add_argument("--vocal-gender", default=None, choices=["m", "f"])
    g.add_argument("--style-weight", type=float, default=None)
    g.add_argument("--weirdness", type=float, default=None)
    g.add_argument("--audio-weight", type=float, default=None)
    g.add_argument("--callback-url", default=None)
    _add_pipeline_args(g)
    g.set_defaults(func=generate_cmd)

    pl = sub.add_parser("poll", help="Resume waiting on an existing task, then ingest")
    pl.add_argument("task_id")
    _add_pipeline_args(pl)
    pl.set_defaults(func=poll_cmd)

    st = sub.add_parser("status", help="Query a task's status once")
    st.add_argument("task_id")
    st.add_argument("--provider", default=None, choices=list_providers())
    st.set_defaults(func=status_cmd)

    gw = sub.add_parser("gateway", help="Print the gateway URL for a content address")
    gw.add_argument("hash")
    gw.set_defaults(func=gateway_cmd)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv(args.env)
    setup_logging(level=args.log_level, log_dir=Path(args.log_dir) if args.log_dir else None)

    try:
        return int(args.func(args))
    except GenerationFailed as e:
        eprint(f"generation failed: {e}")
        if e.handle is not None:
            eprint(f"task_id: {e.handle.task_id}")
        return 1
    except (ConfigError, PipelineError) as e:
        eprint(f"error: {e}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
