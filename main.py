"""ADOLens command line: review a PR, analyze a patch file, or serve webhooks."""

import argparse
import logging
import sys

import config
from analyzer import analyze_diff, merge_results
from change_parser import build_parsed_changes, file_change_for_path
from diff_parser import diff_stats, should_review_file, split_patch
from errors import ReviewError
from models import ReportData
from report_formatter import FORMATTERS, format_report

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adolens",
        description="Pattern-based pull request reviewer for Azure DevOps",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    review = commands.add_parser("review", help="Review an Azure DevOps pull request")
    review.add_argument("--project", required=True, help="Project name or id")
    review.add_argument("--repo", required=True, help="Repository name or id")
    review.add_argument("--pr", required=True, type=int, help="Pull request id")
    review.add_argument("--format", default=config.REPORT_FORMAT, choices=sorted(FORMATTERS))
    review.add_argument(
        "--no-post",
        dest="post",
        action="store_false",
        default=config.POST_COMMENTS,
        help="Print the report without posting it to the PR",
    )

    analyze = commands.add_parser("analyze", help="Analyze a local unified diff")
    analyze.add_argument("diff_file", help="Patch file, or - for stdin")
    analyze.add_argument("--path", default="", help="File path for single-file diffs")
    analyze.add_argument("--format", default=config.REPORT_FORMAT, choices=sorted(FORMATTERS))

    serve = commands.add_parser("serve", help="Run the webhook server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=3000)

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def review_command(args: argparse.Namespace) -> int:
    from agent import run_review
    from azure_client import get_azure_client

    state = run_review(
        get_azure_client(),
        args.project,
        args.repo,
        args.pr,
        report_format=args.format,
        post=args.post,
    )
    if state.get("error"):
        logger.error("Review failed [%s]: %s", state.get("error_code"), state["error"])
        return 1

    print(state["report"])
    if state.get("review_posted"):
        logger.info("✅ Posted thread #%s", state.get("thread_id"))
    return 0


def analyze_patch(diff_text: str, path: str = "") -> ReportData:
    """Analyze a (possibly multi-file) patch without talking to Azure DevOps."""
    results = []
    files = []

    for file_path, file_diff in split_patch(diff_text):
        file_path = file_path or path
        if file_path and not should_review_file(file_path):
            logger.info("Skipping %s", file_path)
            continue

        added, removed = diff_stats(file_diff)
        files.append(file_change_for_path(file_path, lines_added=added, lines_deleted=removed))
        results.append(analyze_diff(file_diff, file_path))

    return ReportData.build(merge_results(results), parsed=build_parsed_changes(files))


def analyze_command(args: argparse.Namespace) -> int:
    if args.diff_file == "-":
        diff_text = sys.stdin.read()
    else:
        with open(args.diff_file, encoding="utf-8") as f:
            diff_text = f.read()

    print(format_report(analyze_patch(diff_text, args.path), args.format))
    return 0


def serve_command(args: argparse.Namespace) -> int:
    import uvicorn

    from webhook import create_app

    uvicorn.run(create_app(post_comments=config.POST_COMMENTS), host=args.host, port=args.port)
    return 0


COMMANDS = {
    "review": review_command,
    "analyze": analyze_command,
    "serve": serve_command,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    if args.debug:
        config.setup_logging("DEBUG")

    try:
        return COMMANDS[args.command](args)
    except ReviewError as e:
        logger.error("%s error: %s", e.code, e.message)
        return 1
    except OSError as e:
        logger.error("Could not read input: %s", e)
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
