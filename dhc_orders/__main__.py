import argparse
import json
import logging
import sys

from . import config

logger = logging.getLogger(__name__)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    logger.info("DHC Order Scraper running at http://%s:%s", args.host, args.port)
    uvicorn.run("dhc_orders.app:create_app", factory=True, host=args.host, port=args.port)
    return 0


def _fetch(args: argparse.Namespace) -> int:
    from . import delhi_hc, pdf_generator

    try:
        found = delhi_hc.search_case(args.case_type, args.case_number, args.year)
    except delhi_hc.DelhiHCError as exc:
        logger.error("%s", exc)
        return 1

    case_details = found["caseDetails"]
    orders = found["orders"]
    print(json.dumps(case_details.model_dump(by_alias=True), indent=2))
    if not orders:
        logger.error("No orders listed for %s", case_details.case_info)
        return 1

    try:
        result = pdf_generator.download_and_merge(
            orders, case_info=case_details.case_info, include_index=args.index
        )
    except pdf_generator.NoPagesMergedError as exc:
        logger.error("%s", exc)
        return 1
    print(json.dumps(result, indent=2))
    return 0 if not result["totalFailed"] else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dhc-orders",
        description="Fetch and merge Delhi High Court order PDFs",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=config.HOST)
    serve.add_argument("--port", type=int, default=config.PORT)
    serve.set_defaults(func=_serve)

    fetch = sub.add_parser("fetch", help="Search a case and merge its orders into DOWNLOADS_DIR")
    fetch.add_argument("case_type", help='Case type as listed by the site, e.g. "W.P.(C)"')
    fetch.add_argument("case_number")
    fetch.add_argument("year")
    fetch.add_argument("--index", action="store_true", help="Prepend an index page")
    fetch.set_defaults(func=_fetch)
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL)
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
