import argparse
import asyncio
import signal
import sys

from dotenv import load_dotenv
from loguru import logger

from chatinstance_cli.app_config import AppConfig, load_json_config, parse_app_config, resolve_runtime_env
from chatinstance_cli.ask import OUTPUT_FORMATS, ask
from chatinstance_cli.commands.dispatcher import SessionState
from chatinstance_cli.errors import ChatInstanceError
from chatinstance_cli.logging_config import setup_logging
from chatinstance_cli.session import VERSION, run_session
from chatinstance_cli.session_config import SessionConfig
from chatinstance_cli.transport import HttpChatTransport

_EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatinstance",
        description="ChatInstance CLI - chat with multiple AI providers from your terminal",
    )
    parser.add_argument("-v", "--version", action="version", version=f"ChatInstance CLI v{VERSION}")
    parser.add_argument("--api-url", help="ChatInstance API base URL")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-p", "--provider", help="AI provider (chatgpt, claude, gemini, perplexity, ollama)")
    common.add_argument("-m", "--model", help="Model to use")
    common.add_argument("-s", "--system", help="System prompt")
    common.add_argument("--stream", action="store_true", help="Stream response in real-time")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("chat", parents=[common], help="Start interactive chat session")
    ask_parser = subparsers.add_parser("ask", parents=[common], help="Ask a single question")
    ask_parser.add_argument("question", help="Question to ask")
    ask_parser.add_argument("--format", choices=OUTPUT_FORMATS, default="plain", help="Output format")
    return parser


def session_config_from(args: argparse.Namespace, app: AppConfig) -> SessionConfig:
    return SessionConfig(
        provider=args.provider or app.default_provider,
        model=args.model or app.default_model,
        streaming=bool(args.stream) or app.stream_response,
        system_prompt=args.system or app.system_prompt,
    )


async def main(argv: list[str] | None = None) -> int:
    # Let Ctrl-C interrupt a blocking input() or a stalled stream right away.
    signal.signal(signal.SIGINT, signal.default_int_handler)
    load_dotenv()
    args = build_parser().parse_args(argv)

    app = parse_app_config(load_json_config())
    env = resolve_runtime_env()

    log_descriptions = setup_logging(app.log_level, app.log_consumers, debug=args.debug)
    logger.debug(f"Logging: {', '.join(log_descriptions)}")

    if not env.api_key:
        logger.error("CHATINSTANCE_API_KEY environment variable is required.")
        return 1

    config = session_config_from(args, app)
    transport = HttpChatTransport(
        args.api_url or env.api_url or app.api_url,
        env.api_key,
        timeout=app.request_timeout_seconds,
        max_tokens=app.max_tokens,
        temperature=app.temperature,
        max_retries=app.max_retries,
    )

    async with transport:
        if args.command == "ask":
            try:
                await ask(args.question, config, transport, output_format=args.format)
            except ChatInstanceError as ex:
                print(f"Failed to get response: {ex}", file=sys.stderr)
                return 1
            return 0

        state = await run_session(
            config.system_prompt,
            config.provider,
            config.model,
            config.streaming,
            transport=transport,
            log_descriptions=log_descriptions,
        )
    return 0 if state is SessionState.TERMINAL else 1


def cli() -> None:
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")
        code = _EXIT_INTERRUPTED
    sys.exit(code)


if __name__ == "__main__":
    cli()
