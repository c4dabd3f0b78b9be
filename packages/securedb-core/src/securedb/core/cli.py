import argparse
import json
import logging
import sys

from securedb.core.connector import SecureConnector
from securedb.core.diagnostics import doctor_check
from securedb.core.plugins import load_all_plugins
from securedb.core.runtime.settings import load_settings


def _setup_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format="%(levelname)s %(name)s: %(message)s")


def main(argv=None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = argparse.ArgumentParser(prog="securedb", description="securedb-core CLI")
    sp = parser.add_subparsers(dest="cmd", required=True)

    docp = sp.add_parser("doctor", help="Show how the configured host and TLS settings resolve (no connect)")
    docp.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    docp.add_argument("--strict", action="store_true", help="Exit 2 when there are warnings")

    conp = sp.add_parser("connect", help="Attempt one connection with the configured settings")
    conp.add_argument("--no-bail", action="store_true", help="Report failure instead of printing the diagnostic and exiting")
    conp.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    args = parser.parse_args(argv)
    settings = load_settings()
    _setup_logging(settings.log_level)

    if args.cmd == "doctor":
        load_all_plugins(settings=settings)
        report = doctor_check(settings)
        if args.json:
            print(json.dumps(report, ensure_ascii=False))
        else:
            h = report["host"]
            c = report["connect"]
            print(f"driver={report['driver']} host={h['host']} port={h['port']} socket={h['socket']} ipv6={h['is_ipv6']}")
            print(f"connect via: {'socket ' + c['socket'] if c['socket'] else c['host'] + ':' + str(c['port'] or 'default')}")
            flags = report["client_flags"]
            print(f"client_flags={flags['value']} ({'|'.join(flags['names']) or 'none'})")
            for name, it in report["tls"].items():
                state = "present" if it["present"] else ("missing" if it["configured"] else "unset")
                print(f"tls.{name}: {state}")
            print(f"enforce_tls={report['enforce_tls']}")
            for w in report.get("warnings", []) or []:
                print(f"! {w.get('loc')}: {w.get('code')} - {w.get('msg')}")
        if args.strict and report["warnings"]:
            return 2
        return 0

    if args.cmd == "connect":
        with SecureConnector(settings) as db:
            ok = db.connect(allow_bail=not args.no_bail)
            res = db.last_result
            out = {
                "ok": ok,
                "reason": res.reason if res else None,
                "errno": res.errno if res else 0,
                "tls": db.tls_applied,
                "charset": db.charset,
                "collate": db.collate,
            }
        if args.json:
            print(json.dumps(out, ensure_ascii=False))
        elif ok:
            print(f"OK: connected to {settings.db_host} tls={out['tls']}")
        else:
            print(f"FAILED: {out['reason']} errno={out['errno']}")
        return 0 if ok else 2

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
