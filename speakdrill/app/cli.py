from __future__ import annotations

"""CLI for speakdrill using SessionManager and the prompt-set loader."""

import argparse
from typing import Any, Dict

from ..audio.capture import make_audio_source_from_config
from ..config.config import load_config, validate_config
from ..recognition.engines import make_provider_from_config
from ..recognition.provider import RecognitionUnavailable
from ..results.report import build_report, write_report
from ..stats.stats import format_summary
from .console import ConsoleRenderer
from .prompt_sets import list_sets, load_prompts
from .session_manager import SessionManager


def _build_ui(*, prompt_before_attempt: bool) -> Dict[str, Any]:
    def _read(prompt: str) -> str:
        try:
            return input(prompt)
        except EOFError:
            return "q"

    def ready(prompt: str) -> str:
        # The typed provider asks for the answer itself
        return _read(prompt) if prompt_before_attempt else ""

    def inform(msg: str) -> None:
        print(msg)

    return {"ready": ready, "ask": _read, "inform": inform}


def _apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """CLI flags win over the config file; applied before validation."""
    def section(name: str) -> Dict[str, Any]:
        if not isinstance(cfg.get(name), dict):
            cfg[name] = {}
        return cfg[name]

    if args.set_id is not None:
        section("session")["prompt_set"] = args.set_id
    if args.max_retries is not None:
        section("session")["max_retries"] = args.max_retries
    if args.auto_advance:
        section("session")["auto_advance"] = True
    if args.provider is not None:
        section("recognition")["provider"] = args.provider
    if args.language is not None:
        section("recognition")["language"] = args.language
    if args.audio is not None:
        section("audio")["backend"] = args.audio
    if args.device_profile is not None:
        cfg["device_profile"] = args.device_profile
    if args.report_dir is not None:
        section("report")["output_dir"] = args.report_dir
    if args.no_report:
        section("report")["enabled"] = False
    return cfg


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="speakdrill")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("list-sets")

    sp = sub.add_parser("show-prompts")
    sp.add_argument("--set", dest="set_id", default="french_months")

    rp = sub.add_parser("run")
    rp.add_argument("--config", default=None)
    rp.add_argument("--set", dest="set_id", default=None)
    rp.add_argument("--provider", choices=["typed", "google"], default=None)
    rp.add_argument("--language", default=None, help="Recognition language tag, e.g. en-US")
    rp.add_argument("--audio", choices=["none", "sounddevice"], default=None, help="Level meter / VAD source")
    rp.add_argument("--device-profile", dest="device_profile", choices=["desktop", "android", "ios"], default=None)
    rp.add_argument("--max-retries", dest="max_retries", type=int, default=None)
    rp.add_argument("--auto-advance", dest="auto_advance", action="store_true")
    rp.add_argument("--report-dir", dest="report_dir", default=None)
    rp.add_argument("--no-report", dest="no_report", action="store_true")
    rp.add_argument("--explain", action="store_true")

    args = p.parse_args(argv)

    if args.cmd == "list-sets":
        for s in list_sets():
            print(f"{s['id']}: {s['title']} - {s['description']} | prompts: {s['prompts']}")
        return 0

    if args.cmd == "show-prompts":
        try:
            prompts = load_prompts(args.set_id)
        except KeyError as e:
            print(f"ERROR: {e.args[0]}")
            return 2
        for pr in prompts:
            hint = f" ({pr.pronunciation_hint})" if pr.pronunciation_hint else ""
            print(f"{pr.id:>3}. {pr.source_text} -> {pr.expected_answer}{hint}")
        return 0

    if args.cmd == "run":
        if args.explain:
            from .explain import enable as explain_enable
            explain_enable(True)
        cfg = validate_config(_apply_overrides(load_config(args.config), args))

        set_id = cfg["session"]["prompt_set"]
        try:
            prompts = load_prompts(set_id)
        except KeyError as e:
            print(f"ERROR: {e.args[0]}")
            return 2

        try:
            audio = make_audio_source_from_config(cfg)
            provider = make_provider_from_config(cfg)
        except RuntimeError as e:
            print(f"ERROR: {e}")
            return 1

        sm = SessionManager(cfg, prompts, audio, provider)
        ui_cfg = cfg.get("ui", {})
        renderer = ConsoleRenderer(show_levels=bool(ui_cfg.get("show_levels", True)))
        renderer.attach(sm.bus)
        if not sm.open():
            print("[WARN] Microphone level meter unavailable; continuing without voice detection.")

        summary = None
        try:
            sm.start_session()
            summary = sm.run(_build_ui(prompt_before_attempt=provider.name != "typed"))
        except RecognitionUnavailable:
            # Already shown through the feedback channel
            print("Cannot continue without speech recognition.")
            return 3
        except KeyboardInterrupt:
            print("\nInterrupted.")
        finally:
            sm.close()
            renderer.detach(sm.bus)

        if summary is None:
            return 0

        records = sm.machine.log
        print("\nSession Summary:")
        print(format_summary(summary, records, prompts))

        report_cfg = cfg["report"]
        if report_cfg.get("enabled", True):
            report = build_report(
                records,
                summary,
                prompts,
                title=str(report_cfg.get("title", "Speaking Practice")),
                platform=str(report_cfg.get("platform", "speakdrill")),
            )
            path = write_report(report, report_cfg.get("output_dir", "./reports"))
            print(f"Report saved to {path}")
        return 0

    return 2
