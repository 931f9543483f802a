"""
storyweaver - learn languages through AI-generated stories.

Usage:
  storyweaver                                   # interactive menu
  storyweaver --topic friendship                # one session, then exit
  storyweaver --random --language urdu --level intermediate
  storyweaver --storage json --no-audio --skip-check

Exit codes: 0 normal exit, 1 initialization failure, 130 interrupted.
"""

import argparse
import logging
import random
import sys
from pathlib import Path
from typing import Optional

from storyweaver.app import StoryweaverApp
from storyweaver.audio import Narrator
from storyweaver.config import APP_NAME, LANGUAGES, LEVELS, TOPICS, VERSION, ConfigManager, Settings, load_settings
from storyweaver.errors import ConfigError, FetchError, PersistenceError
from storyweaver.generation import OllamaClient
from storyweaver.generation.prompts import PROMPT_NAME, get_prompt_config, prompt_version
from storyweaver.storage import get_current_session_id, open_store
from storyweaver.viewer import render_error, render_status, render_success, render_warning

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_INIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storyweaver",
        description=f"{APP_NAME} - learn languages through AI-generated stories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  STORYWEAVER_HOME         data directory (default ~/.local/share/polyglot-stories)
  OLLAMA_ENDPOINT          chat endpoint (default http://localhost:11434/api/chat)
  STORYWEAVER_MODEL        model name (default gpt-oss:120b-cloud)
  STORYWEAVER_TIMEOUT      per-attempt timeout in seconds (default 90)
  STORYWEAVER_MAX_RETRIES  attempts per request (default 2)

Narration uses Google Cloud Text-to-Speech: set GOOGLE_APPLICATION_CREDENTIALS
or run `gcloud auth application-default login`, and install ffmpeg for ffplay.
        """
    )
    parser.add_argument(
        "--language",
        choices=list(LANGUAGES),
        help="Language for this run (does not change saved settings)"
    )
    parser.add_argument(
        "--level",
        choices=list(LEVELS),
        help="Level for this run (does not change saved settings)"
    )
    topic_group = parser.add_mutually_exclusive_group()
    topic_group.add_argument(
        "--topic",
        type=str,
        help="Run a single session on this topic and exit"
    )
    topic_group.add_argument(
        "--random",
        action="store_true",
        help="Run a single session on a random topic and exit"
    )
    parser.add_argument(
        "--no-audio",
        action="store_true",
        help="Disable narration"
    )
    parser.add_argument(
        "--no-exercises",
        action="store_true",
        help="Skip the practice exercises"
    )
    parser.add_argument(
        "--storage",
        choices=["sqlite", "json"],
        help="Storage backend (default: from settings, sqlite)"
    )
    parser.add_argument(
        "--model",
        type=str,
        help="Ollama model name"
    )
    parser.add_argument(
        "--endpoint",
        type=str,
        help="Ollama chat endpoint URL"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Per-attempt request timeout in seconds"
    )
    parser.add_argument(
        "--skip-check",
        action="store_true",
        help="Do not check that the Ollama service is reachable at start-up"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Also log to stderr at DEBUG level"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}"
    )
    return parser


def setup_logging(log_file: Path, verbose: bool = False):
    """Log INFO and above to `log_file`; with `verbose`, DEBUG to stderr too."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)

    if verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(logging.DEBUG)
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(stream_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.endpoint:
        settings.endpoint = args.endpoint
    if args.model:
        settings.model = args.model
    if args.timeout:
        settings.timeout = args.timeout
    return settings


def check_dependencies(client: OllamaClient):
    """
    Make sure the Ollama service answers and warn if the model is missing.

    Raises:
        FetchError: If the service is unreachable
    """
    print(render_status("🔍", "Checking dependencies..."))
    models = client.list_models()
    if models and client.model not in models:
        print(render_warning(f"Model {client.model} not found locally; run: ollama pull {client.model}"))
    print(render_success(f"Ollama service reachable at {client.base_url}"))


def _initialize(args: argparse.Namespace) -> Optional[StoryweaverApp]:
    try:
        settings = apply_overrides(load_settings(), args)
    except ConfigError as e:
        print(render_error(e.user_message()))
        return None

    try:
        settings.app_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(render_error(f"Cannot create data directory {settings.app_dir}: {e}"))
        return None
    setup_logging(settings.log_file, args.verbose)
    logger.info(f"{APP_NAME} v{VERSION} starting (data dir {settings.app_dir})")

    client = OllamaClient(
        endpoint=settings.endpoint,
        model=settings.model,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
    )

    try:
        config_manager = ConfigManager(settings.config_file)
        config = config_manager.load()
        logger.info(f"Prompt template {PROMPT_NAME} v{prompt_version(get_prompt_config())}")
        if not args.skip_check:
            check_dependencies(client)
        store = open_store(args.storage or config.storage, settings)
        session_id = get_current_session_id(settings.sessions_dir)
        app = StoryweaverApp(
            config_manager,
            client,
            store,
            narrator=None if args.no_audio else Narrator(settings.audio_dir),
            session_id=session_id,
            exercises_enabled=not args.no_exercises,
            config=config,
            overrides={k: v for k, v in (("language", args.language), ("level", args.level)) if v},
        )
    except (ConfigError, FetchError, PersistenceError) as e:
        logger.error(f"Initialization failed: {e}")
        print(render_error(e.user_message()))
        return None

    return app


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        app = _initialize(args)
        if app is None:
            return EXIT_INIT_FAILURE

        if args.topic or args.random:
            topic = args.topic or random.choice(TOPICS)
            completed = app.start_session(topic)
            return EXIT_OK if completed else EXIT_INTERRUPTED
        return app.run()
    except KeyboardInterrupt:
        print()
        print(render_error("Interrupted"))
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
