from __future__ import annotations

import argparse
import json
from dataclasses import asdict

from .settings import SettingsService, parse_payload
from .settings_store import SETTINGS_PATH_DEFAULT


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Manage OpenCal calendar sources and preferences")
    ap.add_argument("--settings", default=SETTINGS_PATH_DEFAULT)
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("status")

    add = sub.add_parser("add-source")
    add.add_argument("--name", required=True)
    add.add_argument("--url", default="")
    add.add_argument("--color")

    import_cmd = sub.add_parser("import-source", help="add a source from a JSON object payload")
    import_cmd.add_argument("--payload", required=True)

    remove = sub.add_parser("remove-source")
    remove.add_argument("source_id")

    enable = sub.add_parser("enable")
    enable.add_argument("source_id")

    disable = sub.add_parser("disable")
    disable.add_argument("source_id")

    lang = sub.add_parser("set-language")
    lang.add_argument("language")

    relay = sub.add_parser("set-relay")
    relay.add_argument("url")

    args = ap.parse_args(argv)
    service = SettingsService(args.settings)

    try:
        if args.command == "status":
            print(json.dumps(service.get_status(), indent=2))
            return

        if args.command == "add-source":
            source = service.add_source(args.name, args.url, args.color)
            print(json.dumps(asdict(source), indent=2))
            return

        if args.command == "import-source":
            data = parse_payload(args.payload)
            source = service.add_source(str(data.get("name", "")), str(data.get("url", "")), data.get("color"))
            print(json.dumps(asdict(source), indent=2))
            return

        if args.command == "remove-source":
            service.remove_source(args.source_id)
            print(json.dumps({"ok": True}, indent=2))
            return

        if args.command in ("enable", "disable"):
            source = service.set_enabled(args.source_id, args.command == "enable")
            print(json.dumps(asdict(source), indent=2))
            return

        if args.command == "set-language":
            service.set_language(args.language)
            print(json.dumps({"ok": True}, indent=2))
            return

        if args.command == "set-relay":
            service.set_relay_url(args.url)
            print(json.dumps({"ok": True}, indent=2))
            return
    except ValueError as exc:
        ap.exit(2, f"error: {exc}\n")


if __name__ == "__main__":
    main()
